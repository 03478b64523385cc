"""Create database schema and optionally seed a demo consultation for development."""
from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone

from telecare.db.session import SessionLocal, engine
from telecare.models.base import Base
from telecare.models.video_call import CallStatus, VideoCall
from telecare.repositories import video_calls as video_calls_repo

DEMO_CALL = {
	"room_id": "vc-demo-room",
	"doctor_id": "doctor-amina",
	"patient_id": "patient-omar",
	"duration": 30,
}


async def create_schema() -> None:
	"""Create the database schema if it does not already exist."""

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def seed_demo_call(starts_in_minutes: int) -> None:
	"""Insert or reschedule the demo call so it starts shortly."""

	scheduled_at = datetime.now(timezone.utc) + timedelta(minutes=starts_in_minutes)

	async with SessionLocal() as session:
		async with session.begin():
			call = await session.get(VideoCall, DEMO_CALL["room_id"])
			if call is None:
				await video_calls_repo.create_call(session, scheduled_at=scheduled_at, **DEMO_CALL)
			else:
				call.doctor_id = DEMO_CALL["doctor_id"]
				call.patient_id = DEMO_CALL["patient_id"]
				call.duration = DEMO_CALL["duration"]
				call.scheduled_at = scheduled_at
				call.status = CallStatus.SCHEDULED
				call.ended_at = None
				session.add(call)


async def main(seed: bool, starts_in_minutes: int) -> None:
	await create_schema()
	if seed:
		await seed_demo_call(starts_in_minutes)
	await engine.dispose()
	print("Database schema ensured" + (" and demo call seeded." if seed else "."))


if __name__ == "__main__":
	parser = argparse.ArgumentParser(description=__doc__)
	parser.add_argument("--seed", action="store_true", help="Seed the demo consultation room")
	parser.add_argument("--starts-in", type=int, default=1, help="Minutes until the demo call starts")
	args = parser.parse_args()
	asyncio.run(main(args.seed, args.starts_in))
