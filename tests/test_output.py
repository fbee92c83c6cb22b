"""Tests for the diagnostic output system.

Covers:
- NO_COLOR / TERM=dumb color disabling
- Everything goes to stderr, nothing to stdout
- Quiet mode suppression rules
- Verbose mode debug output
- Rich markup escaping of request paths
- Global instance management
- Convenience functions
"""

from __future__ import annotations

import threading

import pytest

from cacheproxy import output as output_module
from cacheproxy.output import (
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True)
def _reset_global_output():
    """Ensure the global output instance is reset between tests."""
    reset_output()
    yield
    reset_output()


def _plain(**kwargs) -> OutputManager:
    return OutputManager(no_color=True, timestamps=False, **kwargs)


# ------------------------------------------------------------------ #
# Colour detection
# ------------------------------------------------------------------ #


class TestColorDetection:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_colour_enabled_by_default(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# Stream discipline and levels
# ------------------------------------------------------------------ #


class TestLevels:
    def test_all_levels_write_to_stderr(self, capsys):
        mgr = _plain(verbose=True)
        mgr.info("starting")
        mgr.success("listening")
        mgr.warning("slow upstream")
        mgr.error("upstream down")
        mgr.debug("cache hit")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == [
            "starting",
            "listening",
            "Warning: slow upstream",
            "Error: upstream down",
            "[debug] cache hit",
        ]

    def test_quiet_suppresses_info_and_success(self, capsys):
        mgr = _plain(quiet=True)
        mgr.info("starting")
        mgr.success("listening")
        mgr.warning("careful")
        mgr.error("broken")

        err = capsys.readouterr().err
        assert "starting" not in err
        assert "listening" not in err
        assert "Warning: careful" in err
        assert "Error: broken" in err

    def test_debug_hidden_without_verbose(self, capsys):
        mgr = _plain()
        mgr.debug("cache miss")
        assert capsys.readouterr().err == ""

    def test_flags_exposed(self):
        mgr = OutputManager(quiet=True, verbose=True)
        assert mgr.is_quiet is True
        assert mgr.is_verbose is True

    def test_timestamp_prefix(self, capsys):
        OutputManager(no_color=True).info("hello")
        line = capsys.readouterr().err.strip()
        stamp, message = line.split(" ", 1)
        assert message == "hello"
        assert len(stamp) == 8 and stamp.count(":") == 2


# ------------------------------------------------------------------ #
# Rich rendering
# ------------------------------------------------------------------ #


class TestRichRendering:
    def test_markup_in_message_is_escaped(self, capsys, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(timestamps=False)
        mgr.error("Failed to forward GET /items?tag=[bold]x[/bold]")

        err = capsys.readouterr().err
        assert "[bold]x[/bold]" in err
        assert "Error: Failed to forward GET /items" in err

    def test_concurrent_lines_do_not_interleave(self, capsys):
        mgr = _plain()

        def worker(n: int) -> None:
            for i in range(50):
                mgr.info(f"worker-{n}-line-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = capsys.readouterr().err.splitlines()
        assert len(lines) == 400
        assert all(line.startswith("worker-") for line in lines)


# ------------------------------------------------------------------ #
# Global instance management
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        mgr = get_output()
        assert isinstance(mgr, OutputManager)
        assert get_output() is mgr

    def test_set_and_reset(self):
        mgr = _plain()
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr

    def test_convenience_functions_delegate(self, capsys):
        set_output(_plain(verbose=True))
        output_module.info("i")
        output_module.success("s")
        output_module.warning("w")
        output_module.error("e")
        output_module.debug("d")
        assert capsys.readouterr().err.splitlines() == [
            "i",
            "s",
            "Warning: w",
            "Error: e",
            "[debug] d",
        ]
