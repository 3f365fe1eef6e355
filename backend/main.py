from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api import events, websocket
from backend.services.event_bus import bus
from config.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

app = FastAPI(title="Kiosk Dashboard Event Relay", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events.router)
app.include_router(websocket.router)


@app.on_event("startup")
async def startup_event() -> None:
    bus.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    bus.stop()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
