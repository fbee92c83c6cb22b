"""cacheproxy -- a reverse-proxying HTTP cache.

Requests arriving at the proxy are fingerprinted by method and full URL.
When an identical request was answered recently the stored response is
replayed; otherwise the request is forwarded to the upstream target, the
answer is stored for a configurable TTL, and then relayed to the client.
Every proxied response carries an ``X-Cache: HIT`` or ``X-Cache: MISS``
header.

Typical usage::

    cacheproxy serve --target https://api.example.com --ttl 5m --cache-size 100

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Configuration precedence resolution and duration parsing.
    exceptions: Exception hierarchy with exit-code and HTTP status mapping.
    exit_codes: Numeric process exit codes.
    output: stderr diagnostics with Rich support.
    server: Threaded HTTP transport around :class:`~cacheproxy.proxy.ProxyHandler`.
"""

__version__ = "0.1.0"
