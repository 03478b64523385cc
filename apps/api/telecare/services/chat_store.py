"""In-memory per-room chat log with an optional snapshot mirror."""
from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List

from ..schemas.chat import ChatMessage
from .cache import SnapshotCache

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_TTL_SECONDS = 300

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class ChatRoomNotFoundError(LookupError):
    """Raised when a room has never received a message."""


class ChatMessageNotFoundError(LookupError):
    """Raised when the room exists but holds no message with the given id."""


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_message_id() -> str:
    """Time-ordered prefix plus a random suffix; collisions are unlikely, not impossible."""

    prefix = _base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(10))
    return prefix + suffix


def snapshot_key(room_id: str) -> str:
    return f"chat:messages:{room_id}"


class ChatStore:
    """Unbounded per-room message sequences kept in insertion order."""

    def __init__(
        self,
        cache: SnapshotCache | None = None,
        ttl_seconds: int = DEFAULT_SNAPSHOT_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._rooms: Dict[str, List[ChatMessage]] = {}
        self._cache = cache
        self._ttl = ttl_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def send(self, room_id: str, sender: str, body: str) -> ChatMessage:
        message = ChatMessage(
            id=generate_message_id(),
            room_id=room_id,
            sender=sender,
            message=body,
            timestamp=self._clock(),
        )
        self._rooms.setdefault(room_id, []).append(message)
        await self._invalidate(room_id)
        return message

    async def list_messages(self, room_id: str) -> tuple[list[ChatMessage], bool]:
        """Return the room's messages and whether they came from the snapshot."""

        if self._cache is not None:
            snapshot = await self._cache.get(snapshot_key(room_id))
            if snapshot is not None:
                try:
                    return [ChatMessage.model_validate(item) for item in snapshot], True
                except (TypeError, ValueError) as exc:
                    logger.warning("Discarding unreadable chat snapshot for room %s: %s", room_id, exc)

        messages = list(self._rooms.get(room_id, ()))
        if self._cache is not None:
            await self._cache.set(
                snapshot_key(room_id),
                [message.model_dump(mode="json", by_alias=True) for message in messages],
                self._ttl,
            )
        return messages, False

    async def delete(self, room_id: str, message_id: str) -> ChatMessage:
        """Remove one message by id and return it."""

        messages = self._rooms.get(room_id)
        if messages is None:
            raise ChatRoomNotFoundError(room_id)
        for index, message in enumerate(messages):
            if message.id == message_id:
                removed = messages.pop(index)
                await self._invalidate(room_id)
                return removed
        raise ChatMessageNotFoundError(message_id)

    async def _invalidate(self, room_id: str) -> None:
        if self._cache is not None:
            await self._cache.delete(snapshot_key(room_id))
