"""Threaded HTTP transport for the proxy.

Wraps :class:`http.server.ThreadingHTTPServer` so that every accepted
connection is served on its own thread. The request handler converts the
raw HTTP exchange into a :class:`~cacheproxy.models.ProxyRequest`, passes
it to the :class:`~cacheproxy.proxy.handler.ProxyHandler` installed on the
server, and writes the resulting :class:`~cacheproxy.models.ProxyResponse`
back to the socket.

The proxy handler is an explicit attribute of :class:`CacheProxyServer`;
request threads reach it through ``self.server.proxy``.

See Also:
    :func:`run` -- builds the store, upstream client, handler and server
    from a :class:`~cacheproxy.models.ProxyConfig` and serves until
    interrupted.
"""

from __future__ import annotations

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

from cacheproxy.cache import CacheStore
from cacheproxy.client import UpstreamClient
from cacheproxy.exceptions import ServerStartError
from cacheproxy.models import ProxyConfig, ProxyRequest, ProxyResponse
from cacheproxy.output import debug, info, success, warning
from cacheproxy.proxy import ProxyHandler, format_stats

# The transport always frames bodies itself.
_FRAMING_HEADERS = frozenset({"connection", "keep-alive", "transfer-encoding", "content-length"})


class _ProxyRequestHandler(BaseHTTPRequestHandler):
    """Adapts one HTTP exchange to :meth:`ProxyHandler.route`."""

    server: CacheProxyServer
    protocol_version = "HTTP/1.1"

    def __getattr__(self, name: str) -> Any:
        # handle_one_request looks up do_<METHOD>; every method is proxied.
        if name.startswith("do_"):
            return self._dispatch
        raise AttributeError(name)

    def _dispatch(self) -> None:
        try:
            body = self._read_body()
        except ValueError as exc:
            self.send_error(400, f"Malformed request body: {exc}")
            return

        parts = urlsplit(self.path)
        request = ProxyRequest(
            method=self.command,
            path=parts.path or "/",
            query=parts.query,
            headers=list(self.headers.items()),
            body=body,
        )
        response = self.server.proxy.route(request)
        self._write_response(response)

    def _read_body(self) -> bytes:
        """Read the request body framed by Content-Length or chunked encoding."""
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            return self._read_chunked()
        length = self.headers.get("Content-Length")
        if not length:
            return b""
        size = int(length)
        if size < 0:
            raise ValueError(f"negative Content-Length {size}")
        return self.rfile.read(size)

    def _read_chunked(self) -> bytes:
        chunks: list[bytes] = []
        while True:
            line = self.rfile.readline()
            size = int(line.split(b";", 1)[0].strip() or b"0", 16)
            if size == 0:
                # Trailer section ends with an empty line.
                while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                    pass
                return b"".join(chunks)
            chunks.append(self.rfile.read(size))
            self.rfile.readline()

    def _write_response(self, response: ProxyResponse) -> None:
        self.send_response(response.status_code)
        upstream_length: Optional[str] = None
        for name, value in response.headers:
            if name.lower() == "content-length":
                upstream_length = value
            if name.lower() not in _FRAMING_HEADERS:
                self.send_header(name, value)

        if self.command == "HEAD":
            self.send_header("Content-Length", upstream_length or "0")
            self.end_headers()
            return

        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        self.wfile.write(response.body)

    def log_message(self, format: str, *args: Any) -> None:
        debug(f"{self.address_string()} {format % args}")


class CacheProxyServer(ThreadingHTTPServer):
    """Thread-per-connection HTTP server bound to one :class:`ProxyHandler`.

    Args:
        address: ``(host, port)`` to bind. Port ``0`` picks a free port.
        proxy: The handler every request is routed through.

    Raises:
        ServerStartError: If the address cannot be bound.
    """

    daemon_threads = True

    def __init__(self, address: tuple[str, int], proxy: ProxyHandler) -> None:
        self.proxy = proxy
        try:
            super().__init__(address, _ProxyRequestHandler)
        except OSError as exc:
            raise ServerStartError(
                f"Cannot listen on {address[0]}:{address[1]}: {exc}"
            ) from exc

    @property
    def port(self) -> int:
        return self.server_address[1]


def build_handler(
    config: ProxyConfig,
    upstream: UpstreamClient,
) -> ProxyHandler:
    """Create the shared store and the :class:`ProxyHandler` for *config*.

    *upstream* must already be entered.
    """
    store = CacheStore(max_entries=config.max_entries, eviction=config.eviction)
    return ProxyHandler(store, upstream, default_ttl=config.ttl_seconds)


def run(config: ProxyConfig, transport: Optional[httpx.BaseTransport] = None) -> None:
    """Serve *config* until interrupted.

    Args:
        config: Effective proxy configuration.
        transport: Optional httpx transport for the upstream client.

    Raises:
        ServerStartError: If the listen address cannot be bound.
    """
    with UpstreamClient(
        config.target,
        timeout=config.timeout,
        strip_hop_by_hop=config.strip_hop_by_hop,
        transport=transport,
    ) as upstream:
        proxy = build_handler(config, upstream)
        with CacheProxyServer((config.host, config.port), proxy) as server:
            success(f"Starting proxy server on {config.host}:{server.port}")
            info(f"Proxying requests to {config.target}")
            info(
                f"Cache: {config.max_entries} entries, TTL {config.ttl_seconds:g}s, "
                f"{config.eviction.value} eviction"
            )
            try:
                server.serve_forever()
            except KeyboardInterrupt:
                warning("Interrupted, shutting down")
            info(format_stats(proxy.store.stats()))
