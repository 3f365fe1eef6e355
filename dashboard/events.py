from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["info", "success", "warning", "error"]
MessageType = Literal["connection", "event", "error", "ping", "pong"]

DEFAULT_NOTIFY_DURATION_MS = 3000


def now_ms() -> int:
    return int(time.time() * 1000)


class _Action(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str


class NavigateAction(_Action):
    target: str
    params: dict[str, Any] | None = None


class NotifyAction(_Action):
    title: str
    message: str
    severity: Severity | None = None
    duration: int | None = Field(default=None, ge=0)


class ConfigUpdateAction(_Action):
    path: str = Field(min_length=1)
    value: Any = None
    persistent: bool = False


class RefreshAction(_Action):
    target: str | None = None


class CustomAction(_Action):
    handler: str
    params: dict[str, Any] | None = None


class DashboardEvent(BaseModel):
    id: str
    type: str | None = None
    actions: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: int | None = None
    metadata: dict[str, Any] | None = None


class EventEnvelope(BaseModel):
    type: Literal["event"] = "event"
    event: DashboardEvent
    timestamp: int = Field(default_factory=now_ms)


def connection_message(message: str = "Connected to dashboard event server") -> dict[str, Any]:
    return {"type": "connection", "status": "connected", "message": message, "timestamp": now_ms()}


def error_message(error: str) -> dict[str, Any]:
    return {"type": "error", "error": error, "timestamp": now_ms()}
