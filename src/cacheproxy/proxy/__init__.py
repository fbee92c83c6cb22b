"""Request handling for cacheproxy.

:class:`ProxyHandler` is the cache-and-forward core: it fingerprints each
request, consults the :class:`~cacheproxy.cache.CacheStore`, forwards
misses through the :class:`~cacheproxy.client.UpstreamClient`, stores
successful answers, and tags every response with ``X-Cache``.
"""

from cacheproxy.proxy.handler import CACHE_HEADER, CLEAR_CACHE_PATH, ProxyHandler, format_stats

__all__ = ["CACHE_HEADER", "CLEAR_CACHE_PATH", "ProxyHandler", "format_stats"]
