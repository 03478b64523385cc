"""Scheduling and lookup of video consultations for the HTTP API."""
from __future__ import annotations

from datetime import datetime, timezone
from secrets import token_urlsafe
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.video_call import VideoCall
from ..repositories import video_calls as video_calls_repo
from ..schemas import video_calls as schemas
from .call_store import ensure_tz


async def schedule_call(
    payload: schemas.ScheduleCallRequest,
    session: AsyncSession,
) -> schemas.ScheduleCallResponse:
    """Create a call record in ``scheduled`` state under a fresh room identifier."""

    room_id = f"{settings.call_room_prefix}{uuid4()}"

    async with session.begin():
        call = await video_calls_repo.create_call(
            session,
            room_id=room_id,
            doctor_id=payload.doctor_id,
            patient_id=payload.patient_id,
            scheduled_at=ensure_tz(payload.scheduled_at),
            duration=payload.duration,
        )

    return schemas.ScheduleCallResponse(call_details=_summary(call))


async def get_call_details(room_id: str, session: AsyncSession) -> schemas.CallDetailsResponse:
    call = await _require_call(session, room_id)
    return schemas.CallDetailsResponse(call=_details(call))


async def join_call(payload: schemas.JoinCallRequest, session: AsyncSession) -> schemas.JoinCallResponse:
    """Check that the user belongs to the call and hand out a join token.

    Status changes happen when the participant joins the realtime room, not here.
    """

    call = await _require_call(session, payload.room_id)
    if payload.user_id not in (call.doctor_id, call.patient_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to join this call")

    return schemas.JoinCallResponse(token=token_urlsafe(32), call_details=_summary(call))


async def list_upcoming(
    user_id: str,
    session: AsyncSession,
    *,
    now: datetime | None = None,
) -> schemas.UpcomingCallsResponse:
    calls = await video_calls_repo.list_upcoming_for_user(
        session,
        user_id=user_id,
        now=ensure_tz(now or datetime.now(timezone.utc)),
    )
    return schemas.UpcomingCallsResponse(calls=[_details(call) for call in calls])


async def _require_call(session: AsyncSession, room_id: str) -> VideoCall:
    call = await video_calls_repo.get_by_room_id(session, room_id)
    if call is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return call


def _summary(call: VideoCall) -> schemas.CallSummary:
    return schemas.CallSummary(
        room_id=call.room_id,
        scheduled_at=ensure_tz(call.scheduled_at),
        duration=call.duration,
        status=call.status,
    )


def _details(call: VideoCall) -> schemas.CallDetails:
    return schemas.CallDetails(
        room_id=call.room_id,
        doctor_id=call.doctor_id,
        patient_id=call.patient_id,
        scheduled_at=ensure_tz(call.scheduled_at),
        duration=call.duration,
        status=call.status,
        ended_at=ensure_tz(call.ended_at) if call.ended_at else None,
        created_at=ensure_tz(call.created_at) if call.created_at else None,
    )
