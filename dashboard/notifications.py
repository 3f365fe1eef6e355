from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

from dashboard.events import DEFAULT_NOTIFY_DURATION_MS, now_ms
from dashboard.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    id: str
    title: str
    message: str
    severity: str = "info"
    duration: int = DEFAULT_NOTIFY_DURATION_MS
    created_at: int = field(default_factory=now_ms)

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "duration": self.duration,
            "created_at": self.created_at,
        }


class NotificationCenter:
    """Active on-screen notifications, each dismissed after its duration."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._scheduler = scheduler
        self._active: dict[str, Notification] = {}
        self._timers: dict[str, TimerHandle] = {}
        self._ids = itertools.count(1)

    @property
    def active(self) -> list[Notification]:
        return list(self._active.values())

    def show(
        self,
        title: str,
        message: str,
        severity: str = "info",
        duration: int = DEFAULT_NOTIFY_DURATION_MS,
    ) -> Notification:
        notification = Notification(
            id=f"notification-{next(self._ids)}",
            title=title,
            message=message,
            severity=severity,
            duration=duration,
        )
        self._active[notification.id] = notification
        log = logger.warning if severity in {"warning", "error"} else logger.info
        log("Notification [%s] %s: %s", severity, title, message)

        if self._scheduler is not None and duration > 0:
            self._timers[notification.id] = self._scheduler.call_later(
                duration, lambda: self.dismiss(notification.id)
            )
        return notification

    def dismiss(self, notification_id: str) -> bool:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        return self._active.pop(notification_id, None) is not None

    def clear(self) -> None:
        for notification_id in list(self._active):
            self.dismiss(notification_id)
