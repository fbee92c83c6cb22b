"""Typer application and CLI entry point for cacheproxy.

This module wires together the top-level Typer application and the
``serve`` command. Configuration is resolved through
:func:`~cacheproxy.config.resolve_config` (CLI flags, environment,
config files, defaults) and handed to :func:`cacheproxy.server.run`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer
app. :class:`~cacheproxy.exceptions.CacheProxyError` exits with its
``exit_code``; any other exception is written to a crash log under the
data directory.

See Also:
    :mod:`cacheproxy.output`: Diagnostics initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from cacheproxy import __version__
from cacheproxy.exit_codes import EXIT_GENERIC_FAILURE
from cacheproxy.models import EvictionPolicy


app = typer.Typer(
    name="cacheproxy",
    help="Reverse-proxying HTTP cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cacheproxy {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every request and cache event."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~cacheproxy.output.OutputManager` built
    from the CLI flags.
    """
    from cacheproxy.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))


@app.command("serve")
def serve_command(
    target: Optional[str] = typer.Option(
        None, "--target", "-t", help="Upstream server to proxy requests to."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to run the proxy server on. [default: 8080]"
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Address to listen on. [default: 127.0.0.1]"
    ),
    ttl: Optional[str] = typer.Option(
        None, "--ttl", help="Time to live for cached entries, e.g. 30s, 5m. [default: 5m]"
    ),
    cache_size: Optional[int] = typer.Option(
        None, "--cache-size", help="Maximum number of cache entries. [default: 100]"
    ),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", help="Upstream request timeout, e.g. 10s. [default: 10s]"
    ),
    eviction: Optional[EvictionPolicy] = typer.Option(
        None,
        "--eviction",
        case_sensitive=False,
        help="Eviction order when the cache is full. [default: fifo]",
    ),
) -> None:
    """Start the caching reverse proxy."""
    from cacheproxy.config import resolve_config
    from cacheproxy.server import run

    config = resolve_config(
        cli_target=target,
        cli_ttl=ttl,
        cli_cache_size=cache_size,
        cli_timeout=timeout,
        cli_host=host,
        cli_port=port,
        cli_eviction=eviction.value if eviction is not None else None,
    )
    run(config)


def _setup_signal_handlers() -> None:
    """Treat SIGTERM like Ctrl-C so the server shuts down cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from cacheproxy.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(exc)))
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``cacheproxy`` console script.

    Unhandled :class:`~cacheproxy.exceptions.CacheProxyError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from cacheproxy.exceptions import CacheProxyError
        from cacheproxy.output import error

        if isinstance(exc, CacheProxyError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
