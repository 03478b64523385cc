"""Call state access used by the realtime broker."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.video_call import CallStatus, VideoCall
from ..repositories import video_calls as video_calls_repo


@dataclass(frozen=True, slots=True)
class CallRecord:
    """Immutable snapshot of a video call row."""

    room_id: str
    doctor_id: str
    patient_id: str
    scheduled_at: datetime
    duration: int
    status: CallStatus
    ended_at: datetime | None = None

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration)

    def remaining_seconds(self, now: datetime) -> float:
        """Seconds until the natural end of the call window; negative once it has passed."""

        return (self.scheduled_end - ensure_tz(now)).total_seconds()

    @classmethod
    def from_model(cls, call: VideoCall) -> "CallRecord":
        return cls(
            room_id=call.room_id,
            doctor_id=call.doctor_id,
            patient_id=call.patient_id,
            scheduled_at=ensure_tz(call.scheduled_at),
            duration=call.duration,
            status=CallStatus(call.status),
            ended_at=ensure_tz(call.ended_at) if call.ended_at is not None else None,
        )


class CallStateStore(Protocol):
    """Read/update surface of the persisted call record."""

    async def get(self, room_id: str) -> CallRecord | None: ...

    async def start(self, room_id: str) -> bool: ...

    async def complete(self, room_id: str, ended_at: datetime) -> tuple[CallRecord | None, bool]: ...


class SqlCallStateStore:
    """Call state store backed by SQLAlchemy; one transaction per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, room_id: str) -> CallRecord | None:
        async with self._session_factory() as session:
            call = await video_calls_repo.get_by_room_id(session, room_id)
            return CallRecord.from_model(call) if call is not None else None

    async def start(self, room_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                return await video_calls_repo.mark_ongoing(session, room_id)

    async def complete(self, room_id: str, ended_at: datetime) -> tuple[CallRecord | None, bool]:
        async with self._session_factory() as session:
            async with session.begin():
                changed = await video_calls_repo.mark_completed(session, room_id, ensure_tz(ended_at))
                call = await video_calls_repo.get_by_room_id(session, room_id)
                record = CallRecord.from_model(call) if call is not None else None
        return record, changed


def ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
