from __future__ import annotations

import asyncio
import logging
from typing import Any

from config.settings import settings
from dashboard.events import EventEnvelope, connection_message, now_ms
from dashboard.heartbeat import Heartbeat
from dashboard.scheduler import LoopScheduler, Scheduler

logger = logging.getLogger(__name__)

WS_PATH = "/ws"
QUEUE_SIZE = 200


class RelayPeer:
    """One connected websocket client; outgoing messages go through its queue."""

    CLOSE = None

    def __init__(self, client: str = "-") -> None:
        self.client = client
        self.is_alive = True
        self.queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=QUEUE_SIZE)

    def __repr__(self) -> str:
        return f"RelayPeer({self.client})"

    def enqueue(self, message: dict[str, Any] | None) -> bool:
        if self.queue.full():
            try:
                _ = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    def probe(self) -> None:
        self.enqueue({"type": "ping", "timestamp": now_ms()})

    def terminate(self) -> None:
        self.enqueue(self.CLOSE)


class EventBus:
    def __init__(self, heartbeat_interval_ms: float, scheduler: Scheduler | None = None) -> None:
        self._peers: set[RelayPeer] = set()
        self._heartbeat = Heartbeat(scheduler or LoopScheduler(), heartbeat_interval_ms)

    @property
    def client_count(self) -> int:
        return len(self._peers)

    @property
    def heartbeat(self) -> Heartbeat:
        return self._heartbeat

    def start(self) -> None:
        self._heartbeat.start()

    def stop(self) -> None:
        self._heartbeat.stop()
        for peer in list(self._peers):
            peer.terminate()

    def register(self, client: str = "-") -> RelayPeer:
        peer = RelayPeer(client)
        self._peers.add(peer)
        self._heartbeat.track(peer)
        peer.enqueue(connection_message())
        logger.info("Websocket client connected: %s (%d total)", client, self.client_count)
        return peer

    def unregister(self, peer: RelayPeer) -> None:
        self._peers.discard(peer)
        self._heartbeat.untrack(peer)
        logger.info("Websocket client disconnected: %s (%d total)", peer.client, self.client_count)

    async def publish(self, message: dict[str, Any]) -> int:
        sent = 0
        for peer in list(self._peers):
            if peer.enqueue(message):
                sent += 1
        return sent

    async def broadcast_event(self, event: dict[str, Any]) -> int:
        envelope = EventEnvelope.model_validate({"event": event})
        sent = await self.publish(envelope.model_dump(exclude_none=True))
        logger.info("Broadcast event %s to %d client(s)", envelope.event.id, sent)
        return sent

    def status(self) -> dict[str, Any]:
        return {"connected": True, "clients": self.client_count, "path": WS_PATH}


bus = EventBus(heartbeat_interval_ms=settings.heartbeat_interval_ms)
