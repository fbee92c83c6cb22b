"""Upstream HTTP client for cacheproxy.

Provides :class:`UpstreamClient`, a blocking wrapper around
:class:`httpx.Client` that forwards one cache miss to the configured
target with a bounded timeout and typed error mapping, and
:func:`relay_headers`, the hop-by-hop header filter applied in both
directions.

Example::

    from cacheproxy.client import UpstreamClient

    with UpstreamClient("https://api.example.com") as upstream:
        result = upstream.forward(request)
"""

from cacheproxy.client.upstream import HOP_BY_HOP_HEADERS, UpstreamClient, relay_headers

__all__ = ["HOP_BY_HOP_HEADERS", "UpstreamClient", "relay_headers"]
