"""
Realtime channel client.

Keeps one websocket to the event relay open, hands ``event`` envelopes to the
caller in arrival order and reconnects with capped exponential backoff.
Close code 4401 means the relay rejected the token and is never retried.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed

from dashboard.errors import AuthenticationError, ReconnectExhausted
from dashboard.events import now_ms
from dashboard.heartbeat import DEFAULT_HEARTBEAT_INTERVAL_MS, Heartbeat
from dashboard.scheduler import LoopScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

AUTH_REJECTED_CLOSE_CODE = 4401
HEARTBEAT_TIMEOUT_CLOSE_CODE = 4000
MAX_BACKOFF_MS = 60000
DEFAULT_RECONNECT_INTERVAL_MS = 3000
DEFAULT_MAX_RECONNECT_ATTEMPTS = 10

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
CONNECTED = "connected"


class ChannelConnection(Protocol):
    close_code: int | None
    close_reason: str | None

    async def send(self, message: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    def __aiter__(self) -> Any: ...


Connector = Callable[[str], Awaitable[ChannelConnection]]


async def websocket_connector(url: str) -> ChannelConnection:
    # Liveness is tracked by the application heartbeat, not protocol pings.
    return await websockets.connect(url, open_timeout=10, ping_interval=None)


def backoff_delay(base_interval_ms: float, attempt: int) -> float:
    """Delay before reconnect ``attempt`` (1-based): base * 2^(attempt-1), capped at 60s."""
    return min(base_interval_ms * 2 ** (attempt - 1), MAX_BACKOFF_MS)


def with_token(url: str, token: str | None) -> str:
    if not token:
        return url
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "token"]
    query.append(("token", token))
    return urlunsplit(parts._replace(query=urlencode(query)))


class ChannelClient:
    def __init__(
        self,
        url: str,
        token: str | None = None,
        on_event: Callable[[dict[str, Any]], Any] | None = None,
        on_connect: Callable[[], Any] | None = None,
        on_disconnect: Callable[[], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL_MS,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL_MS,
        connector: Connector | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.url = url
        self.token = token
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_attempts = max_reconnect_attempts

        self.connected = False
        self.connecting = False
        self.reconnect_attempts = 0
        self.is_alive = False

        self._on_event = on_event
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_error = on_error
        self._connector = connector or websocket_connector
        self._scheduler = scheduler or LoopScheduler()
        self._heartbeat = Heartbeat(self._scheduler, heartbeat_interval)

        self._ws: ChannelConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._reconnect_timer: TimerHandle | None = None
        self._intentional_close = False

    @property
    def state(self) -> str:
        if self.connected:
            return CONNECTED
        if self.connecting:
            return CONNECTING
        return DISCONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    @property
    def heartbeat(self) -> Heartbeat:
        return self._heartbeat

    def connection_url(self) -> str:
        return with_token(self.url, self.token)

    def connect(self) -> asyncio.Task[None] | None:
        if self.reconnect_attempts >= self.max_reconnect_attempts and not self.reconnect_pending:
            # Manual resume after the retry budget ran out.
            self.reconnect_attempts = 0
        return self._open()

    def _open(self) -> asyncio.Task[None] | None:
        if self.connected or self.connecting:
            logger.debug("Realtime channel already %s", self.state)
            return None

        self._cancel_reconnect()
        self._intentional_close = False
        self.connecting = True
        self._task = asyncio.get_running_loop().create_task(self._run(), name="dashboard-channel")
        return self._task

    async def disconnect(self) -> None:
        self._intentional_close = True
        self._cancel_reconnect()
        self.reconnect_attempts = 0

        ws, task = self._ws, self._task
        if ws is not None:
            await ws.close(1000, "Client disconnect")
        elif task is not None and not task.done():
            task.cancel()

        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._ws = None
        self.connected = False
        self.connecting = False

    async def dispose(self) -> None:
        await self.disconnect()
        self._heartbeat.stop()

    async def send(self, data: Any) -> bool:
        if not self.connected or self._ws is None:
            logger.warning("Cannot send message - realtime channel not connected")
            return False
        message = data if isinstance(data, str) else json.dumps(data)
        await self._ws.send(message)
        return True

    # Heartbeat peer interface.

    def probe(self) -> Awaitable[bool]:
        return self.send({"type": "ping", "timestamp": now_ms()})

    def terminate(self) -> Awaitable[None] | None:
        if self._ws is None:
            return None
        logger.warning("Realtime channel missed heartbeat, closing socket")
        return self._ws.close(HEARTBEAT_TIMEOUT_CLOSE_CODE, "Heartbeat timeout")

    async def _run(self) -> None:
        try:
            ws = await self._connector(self.connection_url())
        except asyncio.CancelledError:
            self.connecting = False
            raise
        except Exception as exc:
            self.connecting = False
            logger.warning("Realtime channel connection to %s failed: %s", self.url, exc)
            await self._emit(self._on_error, exc)
            await self._handle_close(None, str(exc))
            return

        self._ws = ws
        self.connecting = False
        self.connected = True
        self.reconnect_attempts = 0
        self._heartbeat.track(self)
        self._heartbeat.start()
        logger.info("Realtime channel connected to %s", self.url)
        await self._emit(self._on_connect)

        try:
            async for raw in ws:
                await self._handle_message(raw)
        except ConnectionClosed:
            pass
        except Exception as exc:
            logger.warning("Realtime channel transport error: %s", exc)
            await self._emit(self._on_error, exc)

        await self._handle_close(getattr(ws, "close_code", None), getattr(ws, "close_reason", "") or "")

    async def _handle_message(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed realtime message: %r", raw)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring realtime message without envelope: %r", message)
            return

        message_type = message.get("type")
        if message_type == "event":
            event = message.get("event")
            if event is None:
                logger.warning("Event message without payload")
                return
            await self._emit(self._on_event, event)
        elif message_type == "ping":
            await self.send({"type": "pong", "timestamp": now_ms()})
        elif message_type == "pong":
            self.is_alive = True
        elif message_type == "connection":
            logger.info("Realtime channel: %s", message.get("message"))
        elif message_type == "error":
            logger.warning("Realtime channel server error: %s", message.get("error"))
        else:
            logger.warning("Unknown realtime message type: %s", message_type)

    async def _handle_close(self, code: int | None, reason: str) -> None:
        self._ws = None
        self.connected = False
        self.connecting = False
        self._heartbeat.untrack(self)
        logger.info("Realtime channel disconnected (code=%s)", code)
        await self._emit(self._on_disconnect)

        if code == AUTH_REJECTED_CLOSE_CODE:
            logger.error("Realtime channel rejected the token; not reconnecting")
            await self._emit(self._on_error, AuthenticationError(code, reason))
            return
        if self._intentional_close:
            return

        if self.reconnect_attempts >= self.max_reconnect_attempts:
            exhausted = ReconnectExhausted(self.reconnect_attempts)
            logger.error("%s. Check that the event server is running.", exhausted)
            await self._emit(self._on_error, exhausted)
            return

        self.reconnect_attempts += 1
        delay = backoff_delay(self.reconnect_interval, self.reconnect_attempts)
        logger.info(
            "Reconnecting in %sms (attempt %s/%s)",
            delay,
            self.reconnect_attempts,
            self.max_reconnect_attempts,
        )
        self._reconnect_timer = self._scheduler.call_later(delay, self._reconnect)

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        self._open()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    @staticmethod
    async def _emit(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Realtime channel callback failed")
