"""WebSocket endpoint for real-time disaster events.

Inbound frames:
{
    "type": "join_disaster|leave_disaster|subscribe_updates|...",
    "payload": <event data>
}

A plain ``ping`` text frame is answered with ``pong``. Frames are handled
one at a time, so events from one client are processed in arrival order.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from beacon.api.deps import get_ws_broadcaster
from beacon.events.broadcaster import Broadcaster
from beacon.events.handlers import register_default_handlers
from beacon.observability.logging import LogContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_events(
    websocket: WebSocket,
    broadcaster: Broadcaster = Depends(get_ws_broadcaster),
) -> None:
    observer = await broadcaster.connect(websocket)
    register_default_handlers(observer)

    try:
        while True:
            try:
                message = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            with LogContext(observer_id=observer.observer_id):
                await observer.handle_text(message)
    finally:
        await broadcaster.disconnect(observer)
