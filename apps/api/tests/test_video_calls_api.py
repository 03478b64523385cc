"""HTTP tests for scheduling, joining and ending consultations."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from telecare.db.session import get_session
from telecare.main import app
from telecare.services.broker import SignalingBroker, get_broker
from telecare.services.call_store import SqlCallStateStore
from telecare.services.chat_store import ChatStore
from telecare.services.rooms import RoomConnection
from telecare.services.timers import TimerManager


@pytest_asyncio.fixture
async def api(session_factory, virtual_time):
    broker = SignalingBroker(
        call_store=SqlCallStateStore(session_factory),
        chat_store=ChatStore(),
        timers=TimerManager(call_later=virtual_time.call_later),
        clock=virtual_time.now,
    )

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_broker] = lambda: broker
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client, broker
    app.dependency_overrides.clear()


async def _schedule(client: AsyncClient, **overrides) -> dict:
    payload = {
        "doctorId": "doctor-1",
        "patientId": "patient-1",
        "scheduledAt": "2026-03-02T09:00:00Z",
        "duration": 30,
    }
    payload.update(overrides)
    response = await client.post("/api/v1/videocall/schedule", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_schedule_and_fetch_call(api):
    client, _ = api

    body = await _schedule(client)

    assert body["success"] is True
    details = body["callDetails"]
    assert details["roomId"].startswith("vc-")
    assert details["status"] == "scheduled"
    assert details["duration"] == 30

    response = await client.get(f"/api/v1/videocall/{details['roomId']}")
    assert response.status_code == 200
    call = response.json()["call"]
    assert call["doctorId"] == "doctor-1"
    assert call["patientId"] == "patient-1"
    assert call["endedAt"] is None


@pytest.mark.asyncio
async def test_schedule_rejects_incomplete_payload(api):
    client, _ = api

    missing = await client.post("/api/v1/videocall/schedule", json={"doctorId": "doctor-1", "duration": 30})
    zero = await client.post(
        "/api/v1/videocall/schedule",
        json={"doctorId": "d", "patientId": "p", "scheduledAt": "2026-03-02T09:00:00Z", "duration": 0},
    )

    assert missing.status_code == 422
    assert zero.status_code == 422


@pytest.mark.asyncio
async def test_unknown_call_is_404(api):
    client, _ = api

    assert (await client.get("/api/v1/videocall/vc-nope")).status_code == 404
    assert (await client.post("/api/v1/videocall/end", json={"roomId": "vc-nope"})).status_code == 404


@pytest.mark.asyncio
async def test_join_only_for_participants_and_leaves_status_alone(api):
    client, _ = api
    room_id = (await _schedule(client))["callDetails"]["roomId"]

    stranger = await client.post("/api/v1/videocall/join", json={"roomId": room_id, "userId": "intruder"})
    assert stranger.status_code == 403

    patient = await client.post("/api/v1/videocall/join", json={"roomId": room_id, "userId": "patient-1"})
    assert patient.status_code == 200
    body = patient.json()
    assert body["token"]
    assert body["callDetails"]["status"] == "scheduled"


@pytest.mark.asyncio
async def test_end_call_completes_and_notifies_room(api, virtual_time):
    client, broker = api
    room_id = (await _schedule(client))["callDetails"]["roomId"]
    received: list[dict] = []

    async def send(message: dict) -> None:
        received.append(message)

    await broker.join_video_call(RoomConnection("doctor", send), room_id, user_id="doctor-1", user_type="doctor")
    assert broker.timers.is_armed(room_id)

    virtual_time.advance(300)
    response = await client.post("/api/v1/videocall/end", json={"roomId": room_id})

    assert response.status_code == 200
    ended_at = response.json()["endedAt"]
    assert ended_at.startswith("2026-03-02T09:05:00")
    assert not broker.timers.is_armed(room_id)
    assert received[-1]["type"] == "call_ended"
    assert received[-1]["data"]["reason"] == "manual_termination"
    assert received[-1]["data"]["duration"] == 30

    call = (await client.get(f"/api/v1/videocall/{room_id}")).json()["call"]
    assert call["status"] == "completed"
    assert call["endedAt"] is not None

    again = await client.post("/api/v1/videocall/end", json={"roomId": room_id})
    assert again.status_code == 200
    assert again.json()["endedAt"] == ended_at


@pytest.mark.asyncio
async def test_upcoming_calls_for_user(api):
    client, _ = api
    now = datetime.now(timezone.utc)
    later = await _schedule(client, scheduledAt=(now + timedelta(days=2)).isoformat())
    sooner = await _schedule(client, scheduledAt=(now + timedelta(days=1)).isoformat())
    await _schedule(client, scheduledAt=(now - timedelta(days=1)).isoformat())
    await _schedule(client, scheduledAt=(now + timedelta(days=1)).isoformat(), doctorId="doctor-2", patientId="x")

    response = await client.get("/api/v1/videocall/upcoming/doctor-1")

    assert response.status_code == 200
    rooms = [call["roomId"] for call in response.json()["calls"]]
    assert rooms == [sooner["callDetails"]["roomId"], later["callDetails"]["roomId"]]
