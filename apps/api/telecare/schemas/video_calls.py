"""Schemas for scheduling and managing video consultations."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..models.video_call import CallStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ScheduleCallRequest(_CamelModel):
    doctor_id: str = Field(..., alias="doctorId", min_length=1)
    patient_id: str = Field(..., alias="patientId", min_length=1)
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    duration: int = Field(..., gt=0, description="Call length in minutes")


class CallSummary(_CamelModel):
    room_id: str = Field(..., alias="roomId")
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    duration: int
    status: CallStatus


class CallDetails(CallSummary):
    doctor_id: str = Field(..., alias="doctorId")
    patient_id: str = Field(..., alias="patientId")
    ended_at: datetime | None = Field(default=None, alias="endedAt")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class ScheduleCallResponse(_CamelModel):
    success: bool = True
    message: str = "Video call scheduled successfully"
    call_details: CallSummary = Field(..., alias="callDetails")


class CallDetailsResponse(_CamelModel):
    success: bool = True
    call: CallDetails


class JoinCallRequest(_CamelModel):
    room_id: str = Field(..., alias="roomId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)


class JoinCallResponse(_CamelModel):
    success: bool = True
    token: str
    call_details: CallSummary = Field(..., alias="callDetails")


class EndCallRequest(_CamelModel):
    room_id: str = Field(..., alias="roomId", min_length=1)


class EndCallResponse(_CamelModel):
    success: bool = True
    message: str = "Call ended successfully"
    ended_at: datetime | None = Field(default=None, alias="endedAt")


class UpcomingCallsResponse(_CamelModel):
    success: bool = True
    calls: list[CallDetails]
