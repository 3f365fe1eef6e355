from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle: ...

    def call_every(self, interval_ms: float, callback: Callable[[], Any]) -> TimerHandle: ...


_background: set[asyncio.Future[Any]] = set()


def spawn(result: Any) -> asyncio.Future[Any] | None:
    """Schedule ``result`` on the loop when it is awaitable.

    The future is held until it finishes and its failure, if any, is logged.
    """
    if not inspect.isawaitable(result):
        return None
    future = asyncio.ensure_future(result)
    _background.add(future)
    future.add_done_callback(_reap)
    return future


def _reap(future: asyncio.Future[Any]) -> None:
    _background.discard(future)
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed: %s", exc, exc_info=exc)


def run_callback(callback: Callable[[], Any]) -> None:
    """Invoke a timer callback, spawning it as a task when it returns an awaitable."""
    try:
        result = callback()
    except Exception:
        logger.exception("Timer callback %r failed", callback)
        return
    spawn(result)


class PeriodicTask:
    """Repeats a callback on any scheduler that offers ``call_later``."""

    def __init__(self, scheduler: Scheduler, interval_ms: float, callback: Callable[[], Any]) -> None:
        self.interval_ms = interval_ms
        self._scheduler = scheduler
        self._callback = callback
        self._handle: TimerHandle | None = None
        self._cancelled = False
        self._schedule()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(self.interval_ms, self._tick)

    def _tick(self) -> Any:
        if self._cancelled:
            return None
        self._schedule()
        return self._callback()


class LoopScheduler:
    """Millisecond timers on the running asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, run_callback, callback)

    def call_every(self, interval_ms: float, callback: Callable[[], Any]) -> PeriodicTask:
        return PeriodicTask(self, interval_ms, callback)
