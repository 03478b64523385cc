"""Realtime websocket endpoint for chat and call signaling."""
from __future__ import annotations

import json
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..schemas import events as ev
from ..services.broker import get_broker
from ..services.rooms import RoomConnection

logger = logging.getLogger(__name__)

router = APIRouter()


def new_connection_id() -> str:
    """Issue a server-side identity for each accepted socket."""

    return str(uuid4())


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, connection_id: str = Depends(new_connection_id)) -> None:
    """One connection per client; each text frame carries one event."""

    broker = get_broker()
    await websocket.accept()

    connection = RoomConnection(connection_id=connection_id, send=websocket.send_json)
    logger.info("New client connected: %s", connection_id)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except json.JSONDecodeError as exc:
                await websocket.send_json(
                    ev.envelope(
                        ev.OutboundEvent.ERROR,
                        ev.ErrorPayload(code="invalid_event", detail=f"Frame is not valid JSON: {exc.msg}"),
                    )
                )
                continue
            await broker.dispatch(connection, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await broker.disconnect(connection_id)
