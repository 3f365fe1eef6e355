from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.api.deps import verify_token_value
from backend.services.event_bus import RelayPeer, bus
from dashboard.channel import AUTH_REJECTED_CLOSE_CODE, HEARTBEAT_TIMEOUT_CLOSE_CODE
from dashboard.events import error_message, now_ms

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def websocket_stream(websocket: WebSocket) -> None:
    await websocket.accept()
    token = websocket.query_params.get("token")
    if not verify_token_value(token):
        logger.warning("Unauthorized websocket connection attempt")
        await websocket.close(code=AUTH_REJECTED_CLOSE_CODE, reason="Unauthorized")
        return

    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "-"
    peer = bus.register(client)
    tasks = {
        asyncio.create_task(_send_loop(websocket, peer), name=f"ws-send-{client}"),
        asyncio.create_task(_receive_loop(websocket, peer), name=f"ws-receive-{client}"),
    }
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Websocket %s ended with error: %s", client, task.exception())
    finally:
        bus.unregister(peer)


async def _send_loop(websocket: WebSocket, peer: RelayPeer) -> None:
    try:
        while True:
            message = await peer.queue.get()
            if message is RelayPeer.CLOSE:
                await websocket.close(code=HEARTBEAT_TIMEOUT_CLOSE_CODE, reason="Heartbeat timeout")
                return
            await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError):
        return


async def _receive_loop(websocket: WebSocket, peer: RelayPeer) -> None:
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except ValueError:
                message = None
            if not isinstance(message, dict):
                logger.warning("Invalid message from websocket client %s", peer.client)
                peer.enqueue(error_message("Invalid message format"))
                continue

            message_type = message.get("type")
            if message_type == "ping":
                peer.enqueue({"type": "pong", "timestamp": now_ms()})
            elif message_type == "pong":
                peer.is_alive = True
            else:
                logger.debug("Received message from client %s: %s", peer.client, message_type)
    except WebSocketDisconnect:
        return
