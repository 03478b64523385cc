"""Realtime event dispatcher for consultation rooms.

The broker is the only component that changes room membership, writes call status and arms or
cancels call timers. Every inbound websocket frame goes through :meth:`SignalingBroker.dispatch`;
HTTP routes reach the same operations through :func:`get_broker`.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable

from ..models.video_call import CallStatus
from ..schemas import events as ev
from ..schemas.chat import ChatMessage
from .call_store import CallRecord, CallStateStore
from .chat_store import ChatStore
from .rooms import RoomConnection, RoomRegistry
from .timers import TimerManager

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BrokerNotInitializedError(RuntimeError):
    """Raised when realtime features are used before the broker is installed."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalingBroker:
    """Route room events and drive the call lifecycle."""

    def __init__(
        self,
        *,
        call_store: CallStateStore,
        chat_store: ChatStore,
        registry: RoomRegistry | None = None,
        timers: TimerManager | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.call_store = call_store
        self.chat_store = chat_store
        self.registry = registry or RoomRegistry()
        self.timers = timers or TimerManager()
        self._clock = clock or _utcnow
        # Entries disappear once no coroutine holds or awaits the lock.
        self._room_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def dispatch(self, connection: RoomConnection, raw: Any) -> None:
        """Validate one inbound frame and run its handler.

        Failures are logged and reported back to the sender as an ``error`` event; they never
        propagate to the transport loop.
        """

        try:
            event = ev.parse_event(raw)
        except ev.InvalidEventError as exc:
            logger.warning("Rejected frame from %s: %s", connection.connection_id, exc.detail)
            await self._report(connection, "invalid_event", exc.detail, exc.event_type)
            return

        try:
            await self._handle(connection, event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Handler for %s failed (connection %s)", event.type, connection.connection_id)
            await self._report(connection, "handler_failed", str(exc) or type(exc).__name__, event.type)

    async def _handle(self, connection: RoomConnection, event: ev.InboundEvent) -> None:
        if isinstance(event, ev.JoinRoomEvent):
            await self.join_room(connection, event.data.room_id)
        elif isinstance(event, ev.SendMessageEvent):
            await self.relay_chat(event.data)
        elif isinstance(event, ev.JoinVideoCallEvent):
            await self.join_video_call(
                connection,
                event.data.room_id,
                user_id=event.data.user_id,
                user_type=event.data.user_type,
            )
        elif isinstance(event, (ev.OfferEvent, ev.AnswerEvent, ev.IceCandidateEvent)):
            await self.relay_signal(connection, event)
        elif isinstance(event, ev.ChatSendEvent):
            await self.chat_send(event.data.room_id, event.data.sender, event.data.message)
        elif isinstance(event, ev.EndCallEvent):
            await self.end_call(event.data.room_id)

    async def join_room(self, connection: RoomConnection, room_id: str) -> None:
        await self.registry.join(room_id, connection)
        logger.info("Connection %s joined room %s", connection.connection_id, room_id)

    async def relay_chat(self, data: ev.LegacyChatData) -> None:
        """Echo a raw chat payload to the whole room, sender included."""

        await self.registry.broadcast(data.room, ev.envelope(ev.OutboundEvent.RECEIVE_MESSAGE, data))

    async def join_video_call(
        self,
        connection: RoomConnection,
        room_id: str,
        *,
        user_id: str,
        user_type: str,
    ) -> None:
        """Add a participant to a call room and start the call on the first join."""

        await self.registry.join(room_id, connection)
        logger.info("%s %s joined video call room %s", user_type, user_id, room_id)

        await self.registry.broadcast(
            room_id,
            ev.envelope(ev.OutboundEvent.USER_JOINED, ev.UserJoinedPayload(user_id=user_id, user_type=user_type)),
            exclude=connection.connection_id,
        )

        async with self._lock_for(room_id):
            call = await self.call_store.get(room_id)
            if call is None:
                logger.warning("No call record for room %s; joined without starting a call", room_id)
                return
            if call.status is not CallStatus.SCHEDULED:
                return

            try:
                started = await self.call_store.start(room_id)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to mark call %s ongoing", room_id)
                return
            if not started:
                return
            logger.info("Call %s is now ongoing", room_id)

            self._arm_expiry(call)

    def _arm_expiry(self, call: CallRecord) -> None:
        if self.timers.is_armed(call.room_id):
            return
        remaining = call.remaining_seconds(self._clock())
        if remaining <= 0:
            # Past its window: left ongoing until an explicit end_call.
            logger.info("Call %s joined after its scheduled end; no timer armed", call.room_id)
            return
        self.timers.arm(call.room_id, remaining, partial(self.terminate, call.room_id, ev.EndReason.TIMER_EXPIRED))

    async def relay_signal(self, connection: RoomConnection, event: ev.SignalEvent) -> None:
        """Forward an offer, answer or ICE candidate to everyone else in the room."""

        await self.registry.broadcast(
            event.data.room_id,
            ev.envelope(ev.OutboundEvent(event.type), event.data),
            exclude=connection.connection_id,
        )

    async def chat_send(self, room_id: str, sender: str, body: str) -> ChatMessage:
        """Store a chat message and echo it to the whole room, sender included."""

        message = await self.chat_store.send(room_id, sender, body)
        await self.registry.broadcast(room_id, ev.envelope(ev.OutboundEvent.NEW_MESSAGE, message))
        return message

    async def delete_message(self, room_id: str, message_id: str) -> ChatMessage:
        removed = await self.chat_store.delete(room_id, message_id)
        await self.registry.broadcast(
            room_id,
            ev.envelope(
                ev.OutboundEvent.MESSAGE_DELETED,
                ev.MessageDeletedPayload(room_id=room_id, message_id=message_id),
            ),
        )
        return removed

    async def end_call(
        self, room_id: str, reason: ev.EndReason = ev.EndReason.MANUAL_TERMINATION
    ) -> CallRecord | None:
        return await self.terminate(room_id, reason)

    async def terminate(self, room_id: str, reason: ev.EndReason) -> CallRecord | None:
        """Complete the call, notify the room and drop its timer.

        Safe to repeat: the stored ``ended_at`` is written once and later calls only re-broadcast
        it. Returns None when the room has no call record.
        """

        if await self.call_store.get(room_id) is None:
            self.timers.cancel(room_id)
            logger.warning("end_call for room %s without a call record", room_id)
            return None

        async with self._lock_for(room_id):
            record, changed = await self.call_store.complete(room_id, self._clock())
            self.timers.cancel(room_id)

        if record is None:
            return None
        if changed:
            logger.info("Call %s completed (%s)", room_id, reason.value)

        await self.registry.broadcast(
            room_id,
            ev.envelope(
                ev.OutboundEvent.CALL_ENDED,
                ev.CallEndedPayload(
                    room_id=room_id,
                    ended_at=record.ended_at or self._clock(),
                    duration=record.duration,
                    reason=reason,
                ),
            ),
        )
        return record

    async def disconnect(self, connection_id: str) -> list[str]:
        """Drop a closed connection from its rooms.

        Call state is left alone even when the room becomes empty.
        """

        rooms = await self.registry.leave_all(connection_id)
        logger.info("Connection %s disconnected (rooms: %s)", connection_id, ", ".join(rooms) or "-")
        return rooms

    async def shutdown(self) -> None:
        await self.timers.shutdown()

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = self._room_locks[room_id] = asyncio.Lock()
        return lock

    async def _report(self, connection: RoomConnection, code: str, detail: str, event: str | None) -> None:
        frame = ev.envelope(ev.OutboundEvent.ERROR, ev.ErrorPayload(code=code, detail=detail, event=event))
        try:
            await connection.send(frame)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not report %s to %s: %s", code, connection.connection_id, exc)


_broker: SignalingBroker | None = None


def install_broker(broker: SignalingBroker) -> None:
    global _broker
    _broker = broker


def clear_broker() -> None:
    global _broker
    _broker = None


def get_broker() -> SignalingBroker:
    """Return the live broker; fails loudly before startup has installed one."""

    if _broker is None:
        raise BrokerNotInitializedError("Signaling broker not initialized")
    return _broker
