"""Per-room one-shot expiration timers."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Protocol

logger = logging.getLogger(__name__)

TimerAction = Callable[[], Awaitable[None]]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], Cancellable]


@dataclass(slots=True)
class _TimerEntry:
    handle: Cancellable


class TimerManager:
    """Map room identifiers to at most one armed, cancellable deferred action.

    ``call_later`` is the scheduling substrate; it defaults to the running event loop and is
    swapped for a virtual scheduler in tests.
    """

    def __init__(self, call_later: CallLater | None = None) -> None:
        self._call_later = call_later
        self._entries: Dict[str, _TimerEntry] = {}
        self._running: set[asyncio.Task[None]] = set()

    def arm(self, room_id: str, delay_seconds: float, action: TimerAction) -> bool:
        """Arm a timer for the room unless one is already armed.

        The presence check and the insert happen without a suspension point in between.
        """

        if room_id in self._entries:
            logger.debug("Timer already armed for room %s; skipping", room_id)
            return False

        call_later = self._call_later or asyncio.get_running_loop().call_later
        entry: _TimerEntry | None = None

        def _expire() -> None:
            # A stale handle whose entry was replaced or cancelled must not fire.
            if self._entries.get(room_id) is not entry:
                return
            self._entries.pop(room_id, None)
            logger.info("Timer fired for room %s", room_id)
            task = asyncio.ensure_future(self._run(room_id, action))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

        entry = _TimerEntry(handle=call_later(max(delay_seconds, 0.0), _expire))
        self._entries[room_id] = entry
        logger.info("Timer armed for room %s (%.1fs)", room_id, delay_seconds)
        return True

    def cancel(self, room_id: str) -> bool:
        """Cancel and drop the room's timer; a no-op when none is armed."""

        entry = self._entries.pop(room_id, None)
        if entry is None:
            return False
        entry.handle.cancel()
        logger.info("Timer cancelled for room %s", room_id)
        return True

    def is_armed(self, room_id: str) -> bool:
        return room_id in self._entries

    def armed_rooms(self) -> list[str]:
        return list(self._entries)

    async def drain(self) -> None:
        """Wait for actions of timers that already fired."""

        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every armed timer and wait for in-flight actions."""

        for room_id in list(self._entries):
            self.cancel(room_id)
        await self.drain()

    async def _run(self, room_id: str, action: TimerAction) -> None:
        try:
            await action()
        except Exception:  # noqa: BLE001
            logger.exception("Timer action failed for room %s", room_id)
