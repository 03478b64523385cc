"""In-memory room membership registry."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Set

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]


@dataclass(slots=True)
class RoomConnection:
    """Connection wrapper for room participants."""

    connection_id: str
    send: SendCallable


class RoomRegistry:
    """Track which live connections belong to which room and fan messages out to them."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, RoomConnection]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def join(self, room_id: str, connection: RoomConnection) -> list[str]:
        """Register a connection with the room and return the other member IDs.

        Joining a room twice with the same connection leaves a single membership.
        """

        async with self._lock:
            participants = self._rooms.setdefault(room_id, {})
            participants[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set()).add(room_id)
            return [member_id for member_id in participants if member_id != connection.connection_id]

    async def leave(self, room_id: str, connection_id: str) -> None:
        """Remove a connection from the room, cleaning up empty rooms."""

        async with self._lock:
            self._discard(room_id, connection_id)

    async def leave_all(self, connection_id: str) -> list[str]:
        """Remove a connection from every room it joined and return those room IDs."""

        async with self._lock:
            rooms = sorted(self._memberships.get(connection_id, ()))
            for room_id in rooms:
                self._discard(room_id, connection_id)
            return rooms

    async def members(self, room_id: str) -> list[str]:
        async with self._lock:
            return list(self._rooms.get(room_id, {}))

    async def broadcast(self, room_id: str, message: dict, exclude: str | None = None) -> int:
        """Send a message to the room, optionally skipping one connection.

        Returns the number of recipients the message was handed to. Delivery is best effort:
        a failing recipient is logged and does not affect the others.
        """

        async with self._lock:
            participants = list(self._rooms.get(room_id, {}).values())

        recipients = [connection for connection in participants if connection.connection_id != exclude]
        if not recipients:
            return 0

        results = await asyncio.gather(
            *(connection.send(message) for connection in recipients), return_exceptions=True
        )
        for connection, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropped %s for connection %s in room %s: %s",
                    message.get("type"),
                    connection.connection_id,
                    room_id,
                    result,
                )
        return len(recipients)

    def _discard(self, room_id: str, connection_id: str) -> None:
        participants = self._rooms.get(room_id)
        if participants is not None:
            participants.pop(connection_id, None)
            if not participants:
                self._rooms.pop(room_id, None)
        joined = self._memberships.get(connection_id)
        if joined is not None:
            joined.discard(room_id)
            if not joined:
                self._memberships.pop(connection_id, None)
