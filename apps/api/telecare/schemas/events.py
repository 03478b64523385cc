"""Realtime event contracts exchanged over the websocket.

Every frame in either direction is ``{"type": <event name>, "data": {...}}``. Inbound frames are
validated into one of the tagged models below before dispatch.
"""
from __future__ import annotations

from datetime import datetime
import enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .chat import ChatSendRequest


class OutboundEvent(str, enum.Enum):
    USER_JOINED = "user_joined"
    RECEIVE_MESSAGE = "receive_message"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    CALL_ENDED = "call_ended"
    NEW_MESSAGE = "new_message"
    MESSAGE_DELETED = "message_deleted"
    ERROR = "error"


class EndReason(str, enum.Enum):
    TIMER_EXPIRED = "timer_expired"
    MANUAL_TERMINATION = "manual_termination"


class InvalidEventError(ValueError):
    """Raised when an inbound frame does not match any known event."""

    def __init__(self, detail: str, event_type: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.event_type = event_type


class RoomRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)


class LegacyChatData(BaseModel):
    """Raw chat payload relayed without persistence; only ``room`` is required."""

    model_config = ConfigDict(extra="allow")

    room: str = Field(..., min_length=1)


class JoinVideoCallData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    user_type: str = Field(..., alias="userType", min_length=1)


class SignalData(BaseModel):
    """SDP or ICE payload; everything besides ``roomId`` is forwarded untouched."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    room_id: str = Field(..., alias="roomId", min_length=1)


class JoinRoomEvent(BaseModel):
    type: Literal["join_room"]
    data: RoomRef


class SendMessageEvent(BaseModel):
    type: Literal["send_message"]
    data: LegacyChatData


class JoinVideoCallEvent(BaseModel):
    type: Literal["join_video_call"]
    data: JoinVideoCallData


class OfferEvent(BaseModel):
    type: Literal["offer"]
    data: SignalData


class AnswerEvent(BaseModel):
    type: Literal["answer"]
    data: SignalData


class IceCandidateEvent(BaseModel):
    type: Literal["ice-candidate"]
    data: SignalData


class ChatSendEvent(BaseModel):
    type: Literal["chat_send"]
    data: ChatSendRequest


class EndCallEvent(BaseModel):
    type: Literal["end_call"]
    data: RoomRef


SignalEvent = Union[OfferEvent, AnswerEvent, IceCandidateEvent]

InboundEvent = Annotated[
    Union[
        JoinRoomEvent,
        SendMessageEvent,
        JoinVideoCallEvent,
        OfferEvent,
        AnswerEvent,
        IceCandidateEvent,
        ChatSendEvent,
        EndCallEvent,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


def parse_event(raw: Any) -> InboundEvent:
    """Validate a decoded frame into a tagged event."""

    event_type = raw.get("type") if isinstance(raw, dict) else None
    try:
        return _inbound_adapter.validate_python(raw)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'frame'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidEventError(errors, event_type=event_type if isinstance(event_type, str) else None) from exc


class UserJoinedPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    user_type: str = Field(..., alias="userType")


class CallEndedPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId")
    ended_at: datetime = Field(..., alias="endedAt")
    duration: int
    reason: EndReason


class MessageDeletedPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId")
    message_id: str = Field(..., alias="messageId")


class ErrorPayload(BaseModel):
    code: str
    detail: str
    event: str | None = None


def envelope(event: OutboundEvent, data: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """Build a JSON-safe outbound frame."""

    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return {"type": event.value, "data": data}
