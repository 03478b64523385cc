"""In-call chat endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas import chat as schemas
from ..services.broker import SignalingBroker, get_broker
from ..services.chat_store import ChatMessageNotFoundError, ChatRoomNotFoundError

router = APIRouter()


@router.post("/send", response_model=schemas.ChatSendResponse)
async def send_message(
    payload: schemas.ChatSendRequest,
    broker: SignalingBroker = Depends(get_broker),
) -> schemas.ChatSendResponse:
    """Store a message and broadcast it to the room."""

    message = await broker.chat_send(payload.room_id, payload.sender, payload.message)
    return schemas.ChatSendResponse(message=message)


@router.get("/messages/{room_id}", response_model=schemas.ChatHistoryResponse)
async def get_messages(
    room_id: str,
    broker: SignalingBroker = Depends(get_broker),
) -> schemas.ChatHistoryResponse:
    """Return the room's chat history, served from the snapshot when fresh."""

    messages, cached = await broker.chat_store.list_messages(room_id)
    return schemas.ChatHistoryResponse(room_id=room_id, cached=cached, messages=messages)


@router.delete("/delete/{room_id}/{message_id}", response_model=schemas.ChatDeleteResponse)
async def delete_message(
    room_id: str,
    message_id: str,
    broker: SignalingBroker = Depends(get_broker),
) -> schemas.ChatDeleteResponse:
    """Delete one message by id and tell the room."""

    try:
        removed = await broker.delete_message(room_id, message_id)
    except ChatRoomNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found") from None
    except ChatMessageNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found") from None
    return schemas.ChatDeleteResponse(deleted_message=removed)
