"""Data contracts for the in-call chat."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    room_id: str = Field(..., alias="roomId")
    sender: str
    message: str
    timestamp: datetime


class ChatSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)
    sender: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ChatSendResponse(BaseModel):
    success: bool = True
    message: ChatMessage


class ChatHistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    room_id: str = Field(..., alias="roomId")
    cached: bool
    messages: list[ChatMessage]


class ChatDeleteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Message deleted successfully"
    deleted_message: ChatMessage = Field(..., alias="deletedMessage")
