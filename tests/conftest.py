"""Shared test fixtures for fetchless.

Provides a controllable clock, a fake HTTP server wired through
:class:`httpx.MockTransport`, a factory for caching clients bound to both,
isolated config directories, output state management and a CLI runner.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from fetchless.client import CachingClient
from fetchless.models import ClientConfig, RetryConfig
from fetchless.output import OutputFormat, OutputManager, reset_output, set_output

BASE_URL = "https://api.test"
START_TIME = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager keeps references to sys.stdout/sys.stderr from when
    it was created; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Time and network fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeServer:
    """Async request handler for :class:`httpx.MockTransport`.

    Successful responses echo the request path and query plus a call
    counter, so tests can tell which network call produced a response.
    Set ``status`` to an error code, ``connect_error`` to refuse
    connections, ``disconnect`` to drop the connection mid-response, or
    ``delay`` to hold responses open.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.connect_error = False
        self.disconnect = False
        self.delay = 0.0

    @property
    def count(self) -> int:
        return len(self.requests)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        call = len(self.requests)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.connect_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.disconnect:
            raise httpx.RemoteProtocolError(
                "Server disconnected without sending a response", request=request
            )
        if self.status >= 400:
            return httpx.Response(self.status, json={"error": f"failure {call}"})
        return httpx.Response(
            200,
            json={
                "path": request.url.path,
                "query": dict(request.url.params),
                "call": call,
            },
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


def mock_http_client(server: FakeServer, base_url: str = BASE_URL) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(server.handle), base_url=base_url)


@pytest.fixture
def make_client(server: FakeServer, clock: FakeClock) -> Callable[..., CachingClient]:
    """Factory building a :class:`CachingClient` on the fake server and clock.

    Keyword arguments are :class:`ClientConfig` fields, plus ``storage``.
    Retries are disabled unless a ``retry`` option is given.
    """

    def factory(storage: Optional[Any] = None, **options: Any) -> CachingClient:
        options.setdefault("base_url", BASE_URL)
        options.setdefault("retry", RetryConfig(max_retries=0))
        return CachingClient(
            ClientConfig(**options),
            http_client=mock_http_client(server, options["base_url"]),
            clock=clock,
            storage=storage,
        )

    return factory


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME, XDG_CACHE_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, clears FETCHLESS_* variables and changes
    the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("fetchless.config._is_xdg_platform", lambda: True)

    for var in ["FETCHLESS_STRATEGY", "FETCHLESS_MAX_AGE", "FETCHLESS_CACHE_DIR"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
