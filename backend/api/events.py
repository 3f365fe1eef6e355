from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.api.deps import require_token
from backend.api.schemas import BroadcastResult, EventCreate, RelayStatus
from backend.services.event_bus import bus
from dashboard.events import now_ms

router = APIRouter(prefix="/api", tags=["events"])


@router.post("/events", dependencies=[Depends(require_token)])
async def broadcast_event(payload: EventCreate) -> BroadcastResult:
    event = payload.model_dump(exclude_none=True)
    event.setdefault("timestamp", now_ms())
    clients = await bus.broadcast_event(event)
    return BroadcastResult(event_id=payload.id, clients=clients)


@router.get("/status")
def relay_status() -> RelayStatus:
    return RelayStatus(**bus.status())
