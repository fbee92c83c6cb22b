"""Canonical Pydantic models shared across all cacheproxy modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- resolved once at startup by
:func:`~cacheproxy.config.resolve_config`:
    :class:`EvictionPolicy` and :class:`ProxyConfig`.

**Request-path models** -- created per request by the transport, the
upstream client and the proxy handler:
    :class:`CacheStatus`, :class:`ProxyRequest`, :class:`ProxyResponse`,
    :class:`UpstreamResponse`, and :class:`CacheEntry`.

Headers are carried as ordered ``(name, value)`` pairs so that repeated
headers (``Set-Cookie``, ``Vary``, ...) survive in order. The ``header_map``
properties wrap them in :class:`httpx.Headers` for case-insensitive access.

Header text is the Latin-1 decoding of the wire bytes, so any byte sequence
(including UTF-8 the sender put there) survives a round trip unchanged.
"""

from __future__ import annotations

import enum
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

HeaderList = list[tuple[str, str]]

HEADER_ENCODING = "latin-1"
"""Codec mapping header bytes to text one-to-one, as :mod:`http.server` does."""


# --- Config ---


class EvictionPolicy(str, enum.Enum):
    """Order in which a full :class:`~cacheproxy.cache.store.CacheStore` evicts.

    ``FIFO`` evicts the least-recently-*inserted* key and never reorders on
    read. ``LRU`` moves a key to the back on every successful read.
    """

    FIFO = "fifo"
    LRU = "lru"


class ProxyConfig(BaseModel):
    """Effective proxy configuration after precedence resolution.

    See Also:
        :func:`~cacheproxy.config.resolve_config`: Builds this model from
        CLI flags, environment, config files and defaults.
    """

    target: str = Field(description="Upstream base URL requests are forwarded to")
    ttl_seconds: float = Field(default=300.0, gt=0, description="Cache entry TTL in seconds")
    max_entries: int = Field(default=100, ge=1, description="Maximum cached responses")
    timeout: float = Field(default=10.0, gt=0, description="Upstream timeout in seconds")
    host: str = Field(default="127.0.0.1", description="Listen address")
    port: int = Field(default=8080, ge=0, le=65535, description="Listen port")
    eviction: EvictionPolicy = Field(default=EvictionPolicy.FIFO)
    strip_hop_by_hop: bool = Field(
        default=True, description="Drop hop-by-hop headers in both directions"
    )

    @field_validator("target")
    @classmethod
    def _target_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("target must not be empty")
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"target is not a valid URL: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("target must be an absolute http:// or https:// URL")
        return value.rstrip("/")


# --- Request path ---


class CacheStatus(str, enum.Enum):
    """Value of the ``X-Cache`` header attached to every proxied response."""

    HIT = "HIT"
    MISS = "MISS"


class ProxyRequest(BaseModel):
    """Transport-neutral view of one inbound client request."""

    method: str
    path: str = "/"
    query: str = Field(default="", description="Raw query string without the leading '?'")
    headers: HeaderList = Field(default_factory=list)
    body: bytes = b""

    @property
    def url(self) -> str:
        """Path plus query string, exactly as the client sent them."""
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path

    @property
    def header_map(self) -> httpx.Headers:
        return httpx.Headers(self.headers, encoding=HEADER_ENCODING)


class ProxyResponse(BaseModel):
    """Transport-neutral response handed back to the transport."""

    status_code: int
    headers: HeaderList = Field(default_factory=list)
    body: bytes = b""

    @property
    def header_map(self) -> httpx.Headers:
        return httpx.Headers(self.headers, encoding=HEADER_ENCODING)

    @property
    def cache_status(self) -> Optional[CacheStatus]:
        value = self.header_map.get("X-Cache")
        return CacheStatus(value) if value else None


class UpstreamResponse(BaseModel):
    """Status, headers and fully-read body returned by the upstream."""

    status_code: int
    headers: HeaderList = Field(default_factory=list)
    body: bytes = b""


class CacheEntry(BaseModel):
    """One stored upstream response. Immutable once created.

    ``created`` is a reading of the same clock the owning
    :class:`~cacheproxy.cache.store.CacheStore` uses, so expiry is a plain
    subtraction.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int = 200
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""
    ttl: float
    created: float

    @property
    def header_map(self) -> httpx.Headers:
        return httpx.Headers(list(self.headers), encoding=HEADER_ENCODING)

    def is_expired(self, now: float) -> bool:
        """Return ``True`` once more than ``ttl`` seconds have passed since ``created``."""
        return now - self.created > self.ttl
