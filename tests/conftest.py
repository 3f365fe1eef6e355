from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Callable
from typing import Any

import pytest

from config.settings import settings
from dashboard.loader import read_config_file
from dashboard.scheduler import PeriodicTask, run_callback

_CLOSED = object()


class VirtualTimer:
    def __init__(self, due: float, seq: int, callback: Callable[[], Any]) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Millisecond timers driven by ``advance`` instead of the wall clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []
        self._timers: list[VirtualTimer] = []
        self._seq = 0

    @property
    def pending(self) -> list[VirtualTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> VirtualTimer:
        self._seq += 1
        self.delays.append(delay_ms)
        timer = VirtualTimer(self.now + max(delay_ms, 0), self._seq, callback)
        self._timers.append(timer)
        return timer

    def call_every(self, interval_ms: float, callback: Callable[[], Any]) -> PeriodicTask:
        return PeriodicTask(self, interval_ms, callback)

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = [timer for timer in self.pending if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda item: (item.due, item.seq))
            self._timers.remove(timer)
            self.now = timer.due
            run_callback(timer.callback)
        self.now = target


class FakeConnection:
    """In-memory stand-in for a websocket client connection."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.closed = False
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(message) for message in self.sent]

    def sent_types(self) -> list[str]:
        return [message.get("type") for message in self.sent_messages]

    def feed(self, message: Any) -> None:
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def server_close(self, code: int, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.server_close(code, reason)

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> Any:
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, failures: int = 0, always_fail: bool = False) -> None:
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self._failures = failures
        self._always_fail = always_fail

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]

    async def __call__(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self._always_fail or self._failures > 0:
            self._failures -= 1
            raise ConnectionRefusedError("connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


_SAMPLE = read_config_file(settings.fallback_config)


@pytest.fixture
def sample_document() -> dict[str, Any]:
    return copy.deepcopy(_SAMPLE)


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


def minimal_document(**overrides: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "version": "1.0.0",
        "config": {},
        "pages": [
            {"id": "a", "name": "A", "layout": {"type": "flex"}, "panels": []},
            {"id": "b", "name": "B", "layout": {"type": "flex"}, "panels": []},
            {"id": "c", "name": "C", "layout": {"type": "flex"}, "panels": []},
        ],
        "navigation": {"initialPage": "a"},
        "dataSources": {},
    }
    document.update(overrides)
    return document
