"""Upstream HTTP client used to forward cache misses.

This module provides :class:`UpstreamClient`, a thin blocking wrapper
around :class:`httpx.Client` that:

- **Mirrors the inbound request** -- method, path, query string, client
  headers and body are copied onto the outbound request before it is
  sent.
- **Bounds every call** -- a single timeout covers connect, write and
  read, so an unresponsive upstream cannot pin a request thread.
- **Reads bodies raw** -- the body is relayed undecoded, so a stored
  ``Content-Encoding: gzip`` header still matches the stored bytes.
- **Maps failures to typed errors** -- build, dispatch and read failures
  raise :class:`~cacheproxy.exceptions.RequestConstructionError`,
  :class:`~cacheproxy.exceptions.UpstreamDispatchError` (or its
  :class:`~cacheproxy.exceptions.UpstreamTimeoutError` subclass) and
  :class:`~cacheproxy.exceptions.ResponseReadError` respectively.

Forwarding is attempted exactly once; there is no retry.
"""

from __future__ import annotations

from typing import Iterable, Optional

import httpx

from cacheproxy.exceptions import (
    RequestConstructionError,
    ResponseReadError,
    UpstreamDispatchError,
    UpstreamTimeoutError,
)
from cacheproxy.models import HEADER_ENCODING, HeaderList, ProxyRequest, UpstreamResponse

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
"""Connection-scoped headers (RFC 9110 section 7.6.1) that are never relayed."""

# Recomputed by httpx from the outbound body.
_REQUEST_ONLY_SKIP = frozenset({"host", "content-length"})


def relay_headers(
    headers: Iterable[tuple[str, str]],
    strip_hop_by_hop: bool = True,
    skip: frozenset[str] = frozenset(),
) -> HeaderList:
    """Return the subset of *headers* that may cross the proxy.

    Order and repeated names are preserved. When *strip_hop_by_hop* is set,
    the fixed hop-by-hop names and any names listed in a ``Connection``
    header are dropped.

    Args:
        headers: ``(name, value)`` pairs.
        strip_hop_by_hop: Drop connection-scoped headers.
        skip: Additional lowercase names to drop unconditionally.
    """
    pairs = list(headers)
    dropped = set(skip)
    if strip_hop_by_hop:
        dropped |= HOP_BY_HOP_HEADERS
        for name, value in pairs:
            if name.lower() == "connection":
                dropped |= {token.strip().lower() for token in value.split(",") if token.strip()}
    return [(name, value) for name, value in pairs if name.lower() not in dropped]


class UpstreamClient:
    """Blocking HTTP client for the proxy's upstream target.

    Must be used as a context manager so that the underlying connection
    pool is opened and closed. A single instance is shared by every
    request thread; :class:`httpx.Client` is thread-safe.

    Args:
        target: Upstream base URL, e.g. ``https://api.example.com``. A path
            prefix on the target is kept in front of every forwarded path.
        timeout: Seconds allowed for each of connect, write and read.
        strip_hop_by_hop: Drop hop-by-hop headers in both directions.
        transport: Optional httpx transport override (tests use
            :class:`httpx.MockTransport`).

    Example::

        with UpstreamClient("https://api.example.com", timeout=10) as upstream:
            result = upstream.forward(ProxyRequest(method="GET", path="/users"))
    """

    def __init__(
        self,
        target: str,
        timeout: float = 10.0,
        strip_hop_by_hop: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._target = target.rstrip("/")
        self._timeout = timeout
        self._strip_hop_by_hop = strip_hop_by_hop
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def target(self) -> str:
        return self._target

    @property
    def timeout(self) -> float:
        return self._timeout

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> UpstreamClient:
        self._client = httpx.Client(
            timeout=self._timeout,
            follow_redirects=False,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Forwarding
    # ------------------------------------------------------------------ #

    def forward(self, request: ProxyRequest) -> UpstreamResponse:
        """Send *request* to the upstream and return its fully-read response.

        Args:
            request: The inbound request to mirror.

        Returns:
            The upstream's status code, relayable headers and raw body.

        Raises:
            RequestConstructionError: The outbound URL or headers are invalid.
            UpstreamTimeoutError: The upstream did not answer in time.
            UpstreamDispatchError: The upstream could not be reached.
            ResponseReadError: The response body could not be read fully.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        outbound = self._build_request(request)

        try:
            response = self._client.send(outbound, stream=True)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(
                f"Upstream timed out after {self._timeout:g}s: {request.method} {request.url}"
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamDispatchError(
                f"Failed to forward {request.method} {request.url}: {exc}"
            ) from exc

        try:
            body = _read_raw(response)
        except (httpx.TransportError, httpx.StreamError) as exc:
            raise ResponseReadError(
                f"Failed to read upstream body for {request.method} {request.url}: {exc}"
            ) from exc
        finally:
            response.close()

        return UpstreamResponse(
            status_code=response.status_code,
            headers=relay_headers(_decode_raw(response.headers.raw), self._strip_hop_by_hop),
            body=body,
        )

    def _build_request(self, request: ProxyRequest) -> httpx.Request:
        """Build the outbound :class:`httpx.Request` with client headers attached."""
        assert self._client is not None
        headers = relay_headers(
            request.headers, self._strip_hop_by_hop, skip=_REQUEST_ONLY_SKIP
        )
        try:
            outbound = self._client.build_request(
                method=request.method,
                url=f"{self._target}{request.url}",
                headers=_encode_raw(headers),
                content=request.body or None,
            )
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise RequestConstructionError(
                f"Cannot build upstream request for {request.method} {request.url}: {exc}"
            ) from exc

        if outbound.url.scheme not in ("http", "https") or not outbound.url.host:
            raise RequestConstructionError(
                f"Invalid upstream URL '{outbound.url}': expected an absolute http(s) URL"
            )
        return outbound


def _read_raw(response: httpx.Response) -> bytes:
    """Return the undecoded body of a streamed response."""
    if response.is_stream_consumed:
        # Responses built in memory are loaded at construction time.
        return response.content
    return b"".join(response.iter_raw())


def _decode_raw(raw: Iterable[tuple[bytes, bytes]]) -> HeaderList:
    """Header bytes as text that re-encodes to the same bytes."""
    return [(name.decode(HEADER_ENCODING), value.decode(HEADER_ENCODING)) for name, value in raw]


def _encode_raw(headers: HeaderList) -> list[tuple[bytes, bytes]]:
    # httpx encodes str headers as ASCII; bytes are sent verbatim.
    return [(name.encode(HEADER_ENCODING), value.encode(HEADER_ENCODING)) for name, value in headers]
