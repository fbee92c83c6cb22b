"""Exception hierarchy for cacheproxy.

All exceptions inherit from :class:`CacheProxyError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cacheproxy.exit_codes`.
The top-level error handler in :func:`cacheproxy.app.main` catches
``CacheProxyError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Forwarding failures additionally carry a ``status_code``. They never reach
the CLI: :class:`~cacheproxy.proxy.handler.ProxyHandler` catches them and
turns them into an HTTP response with that status.

Subclass hierarchy::

    CacheProxyError (exit 1)
    +-- ConfigError                     (exit 2)
    +-- ServerStartError                (exit 3)
    +-- ForwardError                    (exit 4, HTTP 502)
        +-- RequestConstructionError    (HTTP 400)
        +-- UpstreamDispatchError       (HTTP 502)
        |   +-- UpstreamTimeoutError    (HTTP 504)
        +-- ResponseReadError           (HTTP 500)
"""

from cacheproxy.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_FORWARD_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_SERVER_START_ERROR,
)


class CacheProxyError(Exception):
    """Base exception for all cacheproxy errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cacheproxy.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(CacheProxyError):
    """Raised for configuration problems (missing target, bad duration, invalid JSON)."""

    exit_code = EXIT_CONFIG_ERROR


class ServerStartError(CacheProxyError):
    """Raised when the proxy cannot bind its listen address."""

    exit_code = EXIT_SERVER_START_ERROR


class ForwardError(CacheProxyError):
    """Base class for failures while forwarding one request upstream.

    ``status_code`` is the HTTP status the proxy answers with when this
    error ends a request.
    """

    exit_code = EXIT_FORWARD_ERROR
    status_code: int = 502


class RequestConstructionError(ForwardError):
    """Raised when the outbound request cannot be built (invalid target URL, unsupported scheme)."""

    status_code = 400


class UpstreamDispatchError(ForwardError):
    """Raised on network-level failures reaching the upstream (DNS, connection refused, reset)."""

    status_code = 502


class UpstreamTimeoutError(UpstreamDispatchError):
    """Raised when the upstream does not answer within the configured timeout."""

    status_code = 504


class ResponseReadError(ForwardError):
    """Raised when the upstream answered but its body could not be read completely."""

    status_code = 500
