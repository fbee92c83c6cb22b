"""Diagnostic output for the proxy process.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stderr** -- all diagnostics (startup banner, cache events, forwarding
  failures). The proxy writes no data to stdout.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.
* **Thread safety** -- request threads log concurrently, so every write
  goes through a lock and lines never interleave.

The module exposes two layers:

1. :class:`OutputManager` -- a stateful object holding the Rich console and
   quiet/verbose flags. Created once in :func:`~cacheproxy.app.main_callback`
   and installed via :func:`set_output`.
2. Module-level convenience functions (:func:`info`, :func:`error`,
   :func:`debug`, etc.) that delegate to the global ``OutputManager``
   instance so callers do not need to pass the manager around.
"""

from __future__ import annotations

import os
import sys
import threading
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.markup import escape


class OutputManager:
    """Central manager for diagnostic output.

    Wraps a stderr :class:`~rich.console.Console` and routes every message
    through a level check. Request paths and upstream error texts are
    escaped before printing so that square brackets in them are not read
    as Rich markup.

    Args:
        no_color: Disable all colour and Rich markup.
        quiet: Suppress informational messages; warnings and errors still print.
        verbose: Enable debug-level messages (per-request cache events).
        timestamps: Prefix every line with a local ``HH:MM:SS`` timestamp.
    """

    def __init__(
        self,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        timestamps: bool = True,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._timestamps = timestamps
        self._lock = threading.Lock()

        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
            highlight=False,
        )

    @property
    def is_quiet(self) -> bool:
        """Whether quiet mode is enabled."""
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        """Whether verbose mode is enabled."""
        return self._verbose

    def info(self, message: str) -> None:
        """Print an informational message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "")

    def success(self, message: str) -> None:
        """Print a green success message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "green")

    def warning(self, message: str) -> None:
        """Print a yellow warning. NOT suppressed by ``--quiet``."""
        self._emit(message, "yellow", prefix="Warning: ")

    def error(self, message: str) -> None:
        """Print a bold-red error. Never suppressed."""
        self._emit(message, "bold red", prefix="Error: ")

    def debug(self, message: str) -> None:
        """Print a debug message. Only shown when ``--verbose`` is active."""
        if self._verbose:
            self._emit(message, "dim", prefix="[debug] ")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _emit(self, message: str, style: str, prefix: str = "") -> None:
        stamp = f"{datetime.now():%H:%M:%S} " if self._timestamps else ""
        line = f"{stamp}{prefix}{message}"
        with self._lock:
            if self._no_color:
                print(line, file=sys.stderr, flush=True)
            elif style:
                self._stderr.print(f"[{style}]{escape(line)}[/{style}]")
            else:
                self._stderr.print(escape(line))


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _should_disable_color() -> bool:
    """Check if color should be disabled per clig.dev.

    Returns True when NO_COLOR env var is set (any value) or TERM=dumb.
    """
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager` instance.

    If no instance has been installed via :func:`set_output`, a default
    ``OutputManager`` is created lazily.
    """
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance.

    Called once during CLI startup from :func:`~cacheproxy.app.main_callback`.
    """
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def info(message: str) -> None:
    """Print info message to stderr via the global OutputManager."""
    get_output().info(message)


def error(message: str) -> None:
    """Print error to stderr via the global OutputManager."""
    get_output().error(message)


def success(message: str) -> None:
    """Print success message to stderr via the global OutputManager."""
    get_output().success(message)


def warning(message: str) -> None:
    """Print warning to stderr via the global OutputManager."""
    get_output().warning(message)


def debug(message: str) -> None:
    """Print debug message to stderr via the global OutputManager."""
    get_output().debug(message)
