"""HTTP tests for the in-call chat endpoints."""
from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from telecare.main import app
from telecare.services.broker import get_broker
from telecare.services.rooms import RoomConnection


@pytest.mark.asyncio
async def test_send_list_delete_round_trip(broker):
    app.dependency_overrides[get_broker] = lambda: broker
    received: list[dict] = []

    async def send(message: dict) -> None:
        received.append(message)

    await broker.join_room(RoomConnection("watcher", send), "vc-1")
    transport = ASGITransport(app=app)

    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            sent = await client.post(
                "/api/v1/chat/send", json={"roomId": "vc-1", "sender": "dr-amina", "message": "Hello"}
            )
            assert sent.status_code == 200
            message = sent.json()["message"]
            assert message["sender"] == "dr-amina"
            assert received[-1] == {"type": "new_message", "data": message}

            history = await client.get("/api/v1/chat/messages/vc-1")
            assert history.status_code == 200
            body = history.json()
            assert body["roomId"] == "vc-1"
            assert body["cached"] is False
            assert [m["_id"] for m in body["messages"]] == [message["_id"]]

            missing_room = await client.delete(f"/api/v1/chat/delete/vc-404/{message['_id']}")
            assert missing_room.status_code == 404
            assert missing_room.json()["detail"] == "Room not found"

            deleted = await client.delete(f"/api/v1/chat/delete/vc-1/{message['_id']}")
            assert deleted.status_code == 200
            assert deleted.json()["deletedMessage"]["_id"] == message["_id"]
            assert received[-1] == {
                "type": "message_deleted",
                "data": {"roomId": "vc-1", "messageId": message["_id"]},
            }

            missing_message = await client.delete(f"/api/v1/chat/delete/vc-1/{message['_id']}")
            assert missing_message.status_code == 404
            assert missing_message.json()["detail"] == "Message not found"
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_chat_send_validates_payload(broker):
    app.dependency_overrides[get_broker] = lambda: broker
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.post("/api/v1/chat/send", json={"roomId": "vc-1", "sender": "a"})
        assert response.status_code == 422
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_routes_fail_fast_without_broker():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/api/v1/chat/messages/vc-1")

    assert response.status_code == 503
    assert response.json()["detail"] == "Signaling broker not initialized"
