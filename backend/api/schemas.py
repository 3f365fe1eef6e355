from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from dashboard.events import DashboardEvent


class EventCreate(DashboardEvent):
    id: str = Field(min_length=1)

    @field_validator("actions")
    @classmethod
    def validate_actions(cls, value: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for index, action in enumerate(value):
            action_type = action.get("type")
            if not isinstance(action_type, str) or not action_type.strip():
                raise ValueError(f"actions[{index}] requires a non-empty 'type'")
        return value


class BroadcastResult(BaseModel):
    ok: bool = True
    event_id: str
    clients: int


class RelayStatus(BaseModel):
    connected: bool
    clients: int
    path: str
