"""Video consultation model."""
from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class VideoCall(Base):
    """Scheduled doctor/patient consultation keyed by its room identifier."""

    __tablename__ = "video_calls"
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_video_calls_duration_positive"),
        CheckConstraint(
            "(status = 'completed') = (ended_at IS NOT NULL)",
            name="ck_video_calls_ended_at_iff_completed",
        ),
    )

    room_id: Mapped[str] = mapped_column(String, primary_key=True)
    doctor_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    patient_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[CallStatus] = mapped_column(
        Enum(CallStatus, name="call_status", values_callable=lambda members: [m.value for m in members]),
        default=CallStatus.SCHEDULED,
        nullable=False,
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
