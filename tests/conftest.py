"""Shared test fixtures for cacheproxy.

Provides a controllable clock, store and upstream doubles built on
:class:`httpx.MockTransport`, isolated config environments, and output
state management. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator

import httpx
import pytest

from cacheproxy.cache import CacheStore
from cacheproxy.client import UpstreamClient
from cacheproxy.output import OutputManager, reset_output, set_output
from cacheproxy.proxy import ProxyHandler

UPSTREAM = "http://upstream.test"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingUpstream:
    """MockTransport handler that counts calls and answers per path.

    By default every request gets a 200 whose body names the method, path
    and call number, so a fresh forward is distinguishable from a replay.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] | None = None

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responder is not None:
            return self.responder(request)
        return httpx.Response(
            200,
            headers=[
                ("Content-Type", "text/plain"),
                ("Set-Cookie", "a=1"),
                ("Set-Cookie", "b=2"),
            ],
            content=f"{request.method} {request.url.raw_path.decode()} #{self.calls}".encode(),
        )


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output() -> Iterator[None]:
    """Install a quiet, colourless OutputManager and reset it afterwards."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Cache and proxy fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> CacheStore:
    """A two-entry FIFO store on the fake clock."""
    return CacheStore(max_entries=2, clock=clock)


@pytest.fixture
def recording_upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def upstream_client(recording_upstream: RecordingUpstream) -> Iterator[UpstreamClient]:
    """An entered UpstreamClient whose transport is *recording_upstream*."""
    with UpstreamClient(
        UPSTREAM, timeout=5, transport=httpx.MockTransport(recording_upstream)
    ) as client:
        yield client


@pytest.fixture
def proxy(store: CacheStore, upstream_client: UpstreamClient) -> ProxyHandler:
    """Handler with TTL=5s over the two-entry store."""
    return ProxyHandler(store, upstream_client, default_ttl=5)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, clears all CACHEPROXY_*
    environment variables, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("cacheproxy.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "CACHEPROXY_TARGET",
        "CACHEPROXY_TTL",
        "CACHEPROXY_CACHE_SIZE",
        "CACHEPROXY_TIMEOUT",
        "CACHEPROXY_HOST",
        "CACHEPROXY_PORT",
        "CACHEPROXY_EVICTION",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path
