"""Per-request cache-and-forward orchestration.

:class:`ProxyHandler` turns one :class:`~cacheproxy.models.ProxyRequest`
into one :class:`~cacheproxy.models.ProxyResponse`. Each call walks the
same state machine::

    received -> key computed -+-> hit  -> served from cache
                              +-> miss -> forwarding -+-> stored -> served from upstream
                                                      +-> served error

The store lock is only taken inside :meth:`CacheStore.get` and
:meth:`CacheStore.set`; forwarding runs with no lock held, so a slow
upstream never delays lookups for other keys. Two concurrent misses for
one key may both forward and both store; the last write wins.

See Also:
    :mod:`cacheproxy.server` -- the transport that calls :meth:`ProxyHandler.route`.
"""

from __future__ import annotations

from typing import Any, Optional

from cacheproxy.cache import CacheStore, fingerprint
from cacheproxy.client import UpstreamClient
from cacheproxy.exceptions import ForwardError
from cacheproxy.models import (
    CacheEntry,
    CacheStatus,
    HeaderList,
    ProxyRequest,
    ProxyResponse,
    UpstreamResponse,
)
from cacheproxy.output import debug, error, info

CACHE_HEADER = "X-Cache"
CLEAR_CACHE_PATH = "/clear-cache"


class ProxyHandler:
    """Serve requests from a :class:`CacheStore`, forwarding misses upstream.

    Args:
        store: Shared response store.
        upstream: An entered :class:`UpstreamClient` for the target.
        default_ttl: Lifetime in seconds given to every new entry.

    Example::

        handler = ProxyHandler(CacheStore(max_entries=100), upstream, default_ttl=300)
        response = handler.route(ProxyRequest(method="GET", path="/users"))
        response.header_map["X-Cache"]  # "MISS", then "HIT" on a repeat
    """

    def __init__(
        self,
        store: CacheStore,
        upstream: UpstreamClient,
        default_ttl: float,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self._store = store
        self._upstream = upstream
        self._default_ttl = default_ttl

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    # ------------------------------------------------------------------ #
    # Routes
    # ------------------------------------------------------------------ #

    def route(self, request: ProxyRequest) -> ProxyResponse:
        """Dispatch *request* to the control route or the catch-all proxy route."""
        if request.path == CLEAR_CACHE_PATH:
            return self.clear_cache()
        return self.handle(request)

    def clear_cache(self) -> ProxyResponse:
        """Empty the store and confirm with a 200."""
        removed = self._store.clear()
        info(f"Cache cleared ({removed} entries removed)")
        debug(format_stats(self._store.stats()))
        return ProxyResponse(
            status_code=200,
            headers=[("Content-Type", "text/plain; charset=utf-8")],
            body=b"Cache cleared",
        )

    def handle(self, request: ProxyRequest) -> ProxyResponse:
        """Serve *request* from cache or forward it upstream.

        Returns:
            On a hit, the stored status, headers and body plus
            ``X-Cache: HIT``. On a miss, the upstream's status, headers and
            body plus ``X-Cache: MISS``. On a forwarding failure, an error
            status from :attr:`ForwardError.status_code` with
            ``X-Cache: MISS`` and nothing stored.
        """
        key = fingerprint(request.method, request.url)

        entry = self._store.get(key)
        if entry is not None:
            debug(f"Cache hit for {request.method} {request.url}")
            return self._serve_entry(entry)

        debug(f"Cache miss for {request.method} {request.url}")
        headers: HeaderList = [(CACHE_HEADER, CacheStatus.MISS.value)]

        try:
            upstream = self._upstream.forward(request)
        except ForwardError as exc:
            error(str(exc))
            return _error_response(exc, headers)

        self._store.set(key, self._entry_from(upstream))

        headers.extend(_without_cache_header(upstream.headers))
        return ProxyResponse(
            status_code=upstream.status_code,
            headers=headers,
            body=upstream.body,
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _entry_from(self, upstream: UpstreamResponse) -> CacheEntry:
        """Build a cache entry from the upstream *response* (never the outbound request)."""
        return CacheEntry(
            status_code=upstream.status_code,
            headers=tuple(_without_cache_header(upstream.headers)),
            body=upstream.body,
            ttl=self._default_ttl,
            created=self._store.now(),
        )

    def _serve_entry(self, entry: CacheEntry) -> ProxyResponse:
        headers: HeaderList = [(CACHE_HEADER, CacheStatus.HIT.value)]
        headers.extend(entry.headers)
        return ProxyResponse(
            status_code=entry.status_code,
            headers=headers,
            body=entry.body,
        )


def _without_cache_header(headers: HeaderList) -> HeaderList:
    """Drop any upstream ``X-Cache`` so each response carries exactly one."""
    return [(name, value) for name, value in headers if name.lower() != CACHE_HEADER.lower()]


def _error_response(exc: ForwardError, headers: Optional[HeaderList] = None) -> ProxyResponse:
    """Plain-text response for a failed forward."""
    return ProxyResponse(
        status_code=exc.status_code,
        headers=[*(headers or []), ("Content-Type", "text/plain; charset=utf-8")],
        body=f"{exc}\n".encode("utf-8"),
    )


def format_stats(stats: dict[str, Any]) -> str:
    """One-line summary of :meth:`CacheStore.stats` for the log."""
    return (
        f"Cache stats: {stats['size']}/{stats['max_entries']} entries, "
        f"{stats['hits']} hits, {stats['misses']} misses, "
        f"{stats['evictions']} evictions, {stats['expirations']} expirations"
    )
