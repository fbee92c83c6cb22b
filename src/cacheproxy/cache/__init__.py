"""In-memory response caching for cacheproxy.

This package provides :class:`CacheStore`, the bounded, TTL-aware store
shared by all request threads, and :func:`fingerprint`, which derives the
cache key for a request from its method and full URL.

The store is created once at startup by :func:`~cacheproxy.server.build_handler`
and handed to :class:`~cacheproxy.proxy.handler.ProxyHandler`. Its size
and TTL are controlled by :class:`~cacheproxy.models.ProxyConfig`.
"""

from cacheproxy.cache.keys import fingerprint
from cacheproxy.cache.store import CacheStore

__all__ = ["CacheStore", "fingerprint"]
