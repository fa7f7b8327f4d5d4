"""Fixtures for the swroute test suite.

The origin is scripted through :class:`httpx.MockTransport`, time comes from a
settable clock and windows live in an in-memory host.  Config, cache and
data directories are redirected into ``tmp_path``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import httpx
import pytest

from swroute.cache import CacheStorage, CollectionStore
from swroute.client import Network
from swroute.models import Notification, RouterConfig
from swroute.output import reset_output
from swroute.router import RequestCacheRouter
from swroute.worker import WindowClient, WorkerHost


ORIGIN = "https://poetize.test"


# ---------------------------------------------------------------------------
# Global output state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Drop the process-wide OutputManager; CliRunner closes the streams it bound."""
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Scripted origin server
# ---------------------------------------------------------------------------


@dataclass
class Reply:
    """What the origin answers for one path."""

    status: int = 200
    body: Union[bytes, str] = b""
    headers: dict[str, str] = field(default_factory=dict)
    delay: float = 0.0
    fail: bool = False


class Backend:
    """In-memory origin used as the handler of an :class:`httpx.MockTransport`.

    Replies are keyed by ``METHOD path?query``.  Unknown paths answer 404.
    Every request that reaches the origin is recorded in :attr:`calls`.
    """

    def __init__(self) -> None:
        self.replies: dict[str, Reply] = {}
        self.calls: list[httpx.Request] = []

    def add(
        self,
        path: str,
        body: Union[bytes, str] = b"",
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
        delay: float = 0.0,
        method: str = "GET",
        fail: bool = False,
    ) -> None:
        self.replies[f"{method} {path}"] = Reply(status, body, headers or {}, delay, fail)

    def calls_to(self, path: str) -> int:
        return sum(1 for r in self.calls if r.url.raw_path.decode() == path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        reply = self.replies.get(f"{request.method} {request.url.raw_path.decode()}")
        if reply is None:
            return httpx.Response(404, text="not found")
        if reply.delay:
            await asyncio.sleep(reply.delay)
        if reply.fail:
            raise httpx.ConnectError("connection refused", request=request)
        body = reply.body.encode() if isinstance(reply.body, str) else reply.body
        return httpx.Response(reply.status, headers=reply.headers, content=body)


@pytest.fixture
def origin() -> str:
    return ORIGIN


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def transport(backend: Backend) -> httpx.MockTransport:
    return httpx.MockTransport(backend)


@pytest.fixture
async def network(transport: httpx.MockTransport) -> Network:
    async with Network(ORIGIN, transport=transport) as net:
        yield net


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Storage and router
# ---------------------------------------------------------------------------


@pytest.fixture
def storage(tmp_path: Path) -> CacheStorage:
    store = CacheStorage(tmp_path / "cache")
    yield store
    store.close()


@pytest.fixture
def collections(tmp_path: Path) -> CollectionStore:
    store = CollectionStore(tmp_path / "data")
    yield store
    store.close()


@pytest.fixture
def router_config() -> RouterConfig:
    return RouterConfig()


@pytest.fixture
async def router(
    router_config: RouterConfig,
    storage: CacheStorage,
    network: Network,
    clock: FakeClock,
) -> RequestCacheRouter:
    cache_router = RequestCacheRouter(router_config, storage, network, clock=clock)
    yield cache_router
    await cache_router.drain()


# ---------------------------------------------------------------------------
# Worker host
# ---------------------------------------------------------------------------


class FakeWindow(WindowClient):
    def __init__(self, url: str) -> None:
        self._url = url
        self.focused = 0

    @property
    def url(self) -> str:
        return self._url

    async def focus(self) -> None:
        self.focused += 1


class FakeHost(WorkerHost):
    """Records every call the worker makes to its host."""

    def __init__(self, windows: Optional[list[str]] = None) -> None:
        self.windows = [FakeWindow(url) for url in windows or []]
        self.opened: list[str] = []
        self.notifications: list[Notification] = []
        self.events: list[str] = []

    async def skip_waiting(self) -> None:
        self.events.append("skip_waiting")

    async def claim_clients(self) -> None:
        self.events.append("claim_clients")

    async def update_registration(self) -> None:
        self.events.append("update_registration")

    async def show_notification(self, notification: Notification) -> None:
        self.notifications.append(notification)

    async def match_windows(self) -> list[WindowClient]:
        return list(self.windows)

    async def open_window(self, url: str) -> Optional[WindowClient]:
        self.opened.append(url)
        window = FakeWindow(url)
        self.windows.append(window)
        return window


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def make_host():
    """Factory for a host that already shows the given window URLs."""
    return FakeHost


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every swroute directory and the working directory into *tmp_path*.

    ``SWROUTE_*`` overrides are cleared.  Returns *tmp_path*.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("swroute.config._is_xdg_platform", lambda: True)

    for var in ["SWROUTE_ORIGIN", "SWROUTE_CACHE_VERSION"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path

