"""Shared fakes: a virtual clock/scheduler and an in-memory call state store."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from telecare.db.session import build_engine, build_sessionmaker
from telecare.models.base import Base
from telecare.models.video_call import CallStatus
from telecare.services.broker import SignalingBroker, clear_broker
from telecare.services.call_store import CallRecord
from telecare.services.chat_store import ChatStore
from telecare.services.timers import TimerManager

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class _VirtualHandle:
    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualTime:
    """Drives both the broker clock and the timer substrate without real waits."""

    def __init__(self, start: datetime = START) -> None:
        self.start = start
        self.elapsed = 0.0
        self.handles: list[_VirtualHandle] = []

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def call_later(self, delay: float, callback) -> _VirtualHandle:
        handle = _VirtualHandle(self.elapsed + delay, callback)
        self.handles.append(handle)
        return handle

    def pending(self) -> list[_VirtualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds
        due = sorted(
            (handle for handle in self.pending() if handle.when <= self.elapsed),
            key=lambda handle: handle.when,
        )
        for handle in due:
            self.handles.remove(handle)
            handle.callback()


class FakeCallStore:
    """In-memory call store that yields at every read/write like a real database would."""

    def __init__(self) -> None:
        self.records: dict[str, CallRecord] = {}
        self.start_transitions = 0
        self.complete_transitions = 0
        self.fail_get: Exception | None = None
        self.fail_start: Exception | None = None

    def add(
        self,
        room_id: str,
        *,
        scheduled_at: datetime = START,
        duration: int = 30,
        status: CallStatus = CallStatus.SCHEDULED,
    ) -> CallRecord:
        record = CallRecord(
            room_id=room_id,
            doctor_id="doctor-1",
            patient_id="patient-1",
            scheduled_at=scheduled_at,
            duration=duration,
            status=status,
        )
        self.records[room_id] = record
        return record

    async def get(self, room_id: str) -> CallRecord | None:
        await asyncio.sleep(0)
        if self.fail_get is not None:
            raise self.fail_get
        return self.records.get(room_id)

    async def start(self, room_id: str) -> bool:
        await asyncio.sleep(0)
        if self.fail_start is not None:
            raise self.fail_start
        record = self.records.get(room_id)
        if record is None or record.status is not CallStatus.SCHEDULED:
            return False
        self.records[room_id] = replace(record, status=CallStatus.ONGOING)
        self.start_transitions += 1
        return True

    async def complete(self, room_id: str, ended_at: datetime) -> tuple[CallRecord | None, bool]:
        await asyncio.sleep(0)
        record = self.records.get(room_id)
        if record is None:
            return None, False
        if record.status is CallStatus.COMPLETED:
            return record, False
        record = replace(record, status=CallStatus.COMPLETED, ended_at=ended_at)
        self.records[room_id] = record
        self.complete_transitions += 1
        return record, True


@pytest.fixture
def virtual_time() -> VirtualTime:
    return VirtualTime()


@pytest.fixture
def call_store() -> FakeCallStore:
    return FakeCallStore()


@pytest.fixture
def broker(virtual_time: VirtualTime, call_store: FakeCallStore) -> SignalingBroker:
    return SignalingBroker(
        call_store=call_store,
        chat_store=ChatStore(),
        timers=TimerManager(call_later=virtual_time.call_later),
        clock=virtual_time.now,
    )


@pytest.fixture(autouse=True)
def _reset_installed_broker():
    yield
    clear_broker()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'calls.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(engine)
    await engine.dispose()
