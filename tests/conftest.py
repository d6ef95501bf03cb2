"""Pytest configuration and fixtures."""

import asyncio
import heapq
import itertools
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from avpanel.client.daemon_client import DaemonClient
from avpanel.models.model_state import AppState
from avpanel.sync.guard import SessionGuard
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.session import PanelSession
from avpanel.sync.timers import TimerCallback, TimerHandle, Timers

API_BASE = "http://daemon.test/api/"


class FakeTimerHandle(TimerHandle):
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class FakeTimers(Timers):
    """Simulated clock. Nothing fires until the test calls ``advance``.

    Due callbacks are awaited one after another, in due-time order.
    """

    def __init__(self, start: datetime | None = None):
        self.start = start or datetime(2024, 1, 1, tzinfo=UTC)
        self.elapsed = 0.0
        self._queue: list[tuple[float, int, FakeTimerHandle, TimerCallback, float | None]] = []
        self._order = itertools.count()

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def _push(self, due: float, handle: FakeTimerHandle, callback: TimerCallback, period: float | None) -> None:
        heapq.heappush(self._queue, (due, next(self._order), handle, callback, period))

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        handle = FakeTimerHandle()
        self._push(self.elapsed + delay, handle, callback, None)
        return handle

    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle:
        handle = FakeTimerHandle()
        self._push(self.elapsed + period, handle, callback, period)
        return handle

    @property
    def pending(self) -> list[float]:
        """Due times of live timers, relative to now."""
        return sorted(
            due - self.elapsed for due, _, handle, _, _ in self._queue if not handle.cancelled
        )

    async def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, period = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.elapsed = due
            if period is not None:
                self._push(due + period, handle, callback, period)
            await callback()
        self.elapsed = target


class FakeDaemon:
    """Scripted relay served through ``httpx.MockTransport``.

    Routes map (method, path) to (status code, JSON body). A body may be a
    callable taking the request. ``down`` makes every request fail with a
    connection error, decided when the request arrives; ``hold`` delays the
    next reply on one route until the returned event is set.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.down = False
        self._holds: dict[tuple[str, str], asyncio.Event] = {}
        self.reset_routes()

    def reset_routes(self) -> None:
        self.routes.clear()
        self.reply("GET", "status", {"success": True, "daemon_connected": True, "scan_in_progress": False})
        self.reply("GET", "scan/status", {"success": True, "status": "idle"})
        self.reply("GET", "threats", {"success": True, "items": []})
        self.reply("GET", "quarantine", {"success": True, "items": []})
        self.reply("GET", "scan/history", {"success": True, "items": []})
        self.reply("GET", "update/history", {"success": True, "items": []})
        self.reply("GET", "update/status", {"success": True, "is_updating": False})
        self.reply(
            "GET",
            "update/version",
            {"success": True, "version": {"daily": "27001", "main": "62", "bytecode": "335"}},
        )
        self.reply(
            "GET",
            "config",
            {
                "success": True,
                "scan_paths": ["/home"],
                "auto_update": True,
                "quarantine_enabled": True,
                "threat_action": "quarantine",
            },
        )

    def reply(self, method: str, path: str, body: Any, status: int = 200) -> None:
        self.routes[(method, path)] = (status, body)

    def unavailable(self, method: str, path: str) -> None:
        self.reply(method, path, {"success": False, "error": "DAEMON_UNAVAILABLE"}, status=503)

    def hold(self, method: str, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds[(method, path)] = event
        return event

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)

    async def wait_called(self, method: str, path: str, times: int = 1) -> None:
        """Yield to the event loop until a route has been hit ``times`` times."""
        for _ in range(1000):
            if self.count(method, path) >= times:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"{method} {path} was not called {times} time(s)")

    def bodies(self, method: str, path: str) -> list[Any]:
        return [body for m, p, body in self.calls if m == method and p == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path.removeprefix("/api/")
        body = json.loads(request.content) if request.content else None
        self.calls.append((method, path, body))

        down = self.down
        route = self.routes.get((method, path))
        hold = self._holds.pop((method, path), None)
        if hold is not None:
            await hold.wait()

        if down:
            raise httpx.ConnectError("Connection refused", request=request)
        if route is None:
            return httpx.Response(404, json={"success": False, "error": "Not found"})
        status, payload = route
        if callable(payload):
            payload = payload(request)
        return httpx.Response(status, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def fake_daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def client(fake_daemon: FakeDaemon) -> DaemonClient:
    return DaemonClient(api_base=API_BASE, timeout=1.0, transport=fake_daemon.transport)


@pytest.fixture
def store() -> AppState:
    return AppState()


@pytest.fixture
def guard() -> SessionGuard:
    return SessionGuard()


@pytest.fixture
def notifier(store: AppState, timers: FakeTimers) -> NotificationCenter:
    return NotificationCenter(store, timers, ttl=3.0)


@pytest.fixture
def make_session(
    client: DaemonClient, timers: FakeTimers
) -> Callable[..., PanelSession]:
    """Build a session on the fake relay and simulated clock."""

    def factory(confirm: Callable[[str], bool] | None = None) -> PanelSession:
        return PanelSession(client=client, timers=timers, confirm=confirm)

    return factory
