"""Video call persistence helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.video_call import CallStatus, VideoCall


async def get_by_room_id(session: AsyncSession, room_id: str) -> VideoCall | None:
    """Return a call record by room identifier."""

    return await session.get(VideoCall, room_id)


async def create_call(
    session: AsyncSession,
    *,
    room_id: str,
    doctor_id: str,
    patient_id: str,
    scheduled_at: datetime,
    duration: int,
) -> VideoCall:
    """Persist a new scheduled call."""

    call = VideoCall(
        room_id=room_id,
        doctor_id=doctor_id,
        patient_id=patient_id,
        scheduled_at=scheduled_at,
        duration=duration,
        status=CallStatus.SCHEDULED,
    )
    session.add(call)
    await session.flush()
    return call


async def mark_ongoing(session: AsyncSession, room_id: str) -> bool:
    """Move a scheduled call to ongoing.

    Returns True only for the caller whose update performed the transition.
    """

    stmt = (
        update(VideoCall)
        .where(VideoCall.room_id == room_id, VideoCall.status == CallStatus.SCHEDULED)
        .values(status=CallStatus.ONGOING)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def mark_completed(session: AsyncSession, room_id: str, ended_at: datetime) -> bool:
    """Complete a call and stamp its end time once.

    Returns False when the call is unknown or already completed; ``ended_at`` is never overwritten.
    """

    stmt = (
        update(VideoCall)
        .where(VideoCall.room_id == room_id, VideoCall.status != CallStatus.COMPLETED)
        .values(status=CallStatus.COMPLETED, ended_at=ended_at)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_upcoming_for_user(
    session: AsyncSession,
    *,
    user_id: str,
    now: datetime,
) -> list[VideoCall]:
    """Return open calls for the user that start at or after ``now``."""

    stmt = (
        select(VideoCall)
        .where(
            or_(VideoCall.doctor_id == user_id, VideoCall.patient_id == user_id),
            VideoCall.status.in_([CallStatus.SCHEDULED, CallStatus.ONGOING]),
            VideoCall.scheduled_at >= now,
        )
        .order_by(VideoCall.scheduled_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
