from __future__ import annotations

import logging
from typing import Any, Protocol

from dashboard.scheduler import Scheduler, TimerHandle, spawn

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL_MS = 30000


class HeartbeatPeer(Protocol):
    is_alive: bool

    def probe(self) -> Any: ...

    def terminate(self) -> Any: ...


class Heartbeat:
    """Liveness monitor over a set of connections.

    Every tick, a peer that has not acknowledged the previous probe is
    terminated; every other peer has its flag cleared and is probed again.
    """

    def __init__(self, scheduler: Scheduler, interval_ms: float = DEFAULT_HEARTBEAT_INTERVAL_MS) -> None:
        self.interval_ms = interval_ms
        self._scheduler = scheduler
        self._peers: list[HeartbeatPeer] = []
        self._timer: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def peers(self) -> list[HeartbeatPeer]:
        return list(self._peers)

    def track(self, peer: HeartbeatPeer) -> None:
        peer.is_alive = True
        if peer not in self._peers:
            self._peers.append(peer)

    def untrack(self, peer: HeartbeatPeer) -> None:
        if peer in self._peers:
            self._peers.remove(peer)

    def start(self) -> None:
        if self._timer is None:
            self._timer = self._scheduler.call_every(self.interval_ms, self.tick)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self) -> None:
        for peer in list(self._peers):
            if not peer.is_alive:
                logger.info("Terminating unresponsive connection %r", peer)
                self.untrack(peer)
                spawn(peer.terminate())
                continue
            peer.is_alive = False
            spawn(peer.probe())
