"""Background expiry engine.

Two timers drive state changes independently of client requests:

* A periodic sweep (default every 5 minutes) that, room by room, prunes
  messages past the retention window, prunes inactive participants, flags
  fully acknowledged messages, purges flagged messages past their grace
  window and finally asks the registry to reap idle rooms.
* One-shot removal timers keyed by message id, fired once a flagged
  message's grace window elapses.

Both paths take the same per-room lock as client operations, never hold a
room's lock while touching another room, and treat a vanished room or
message as a silent no-op.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..config import ReaperConfig
from . import events
from .gateway import Notifier
from .models import RoomEvent
from .registry import RoomRegistry
from .room import Room

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counters from one sweep pass (for logging and tests)."""
    rooms_swept:         int       = 0
    messages_ttl_pruned: int       = 0
    participants_pruned: int       = 0
    messages_flagged:    int       = 0
    messages_purged:     int       = 0
    rooms_reaped:        List[str] = field(default_factory=list)


class ExpiryReaper:
    """Runs the periodic sweep and the per-message grace timers."""

    def __init__(
        self,
        registry: RoomRegistry,
        notifier: Notifier,
        config: Optional[ReaperConfig] = None,
        clock: Callable[[], float] = time.time,
        on_room_reaped: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._registry = registry
        self._notifier = notifier
        self._config = config or ReaperConfig()
        self._clock = clock
        self._on_room_reaped = on_room_reaped
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]
        # message_id -> pending grace-removal task
        self._timers: Dict[str, asyncio.Task] = {}  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the periodic sweep task."""
        if self.running:
            logger.warning("Expiry reaper is already running")
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "Expiry reaper started (interval=%ss)", self._config.interval_seconds
        )

    async def stop(self) -> None:
        """Cancel the sweep task and every pending grace timer."""
        tasks = list(self._timers.values())
        if self._sweep_task:
            tasks.append(self._sweep_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None
        self._timers.clear()
        logger.info("Expiry reaper stopped")

    def pending_removals(self) -> List[str]:
        return list(self._timers)

    # ------------------------------------------------------------------
    # Periodic sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval_seconds)
            try:
                await self.sweep_once()
            except Exception:
                # Keep the loop alive; the traceback is the signal.
                logger.exception("Expiry sweep failed")

    async def sweep_once(self, now: Optional[float] = None) -> SweepReport:
        """Run one full pass over every room, then reap idle rooms."""
        now = self._clock() if now is None else now
        report = SweepReport()

        for room in self._registry.rooms():
            try:
                room_events = await self._sweep_room(room, now, report)
            except Exception:
                logger.exception("Expiry sweep failed for room %s", room.code)
                continue
            for event in room_events:
                await self._notifier.publish(event)

        report.rooms_reaped = await self._registry.reap_idle(now)
        for code in report.rooms_reaped:
            if self._on_room_reaped is not None:
                self._on_room_reaped(code)

        logger.info(
            "Expiry sweep: rooms=%d ttl_pruned=%d participants_pruned=%d "
            "flagged=%d purged=%d reaped=%d",
            report.rooms_swept,
            report.messages_ttl_pruned,
            report.participants_pruned,
            report.messages_flagged,
            report.messages_purged,
            len(report.rooms_reaped),
        )
        return report

    async def _sweep_room(
        self, room: Room, now: float, report: SweepReport
    ) -> List[RoomEvent]:
        async with room.lock:
            if room.closed:
                return []
            ttl_pruned = room.prune_by_ttl(now)
            departed = room.prune_inactive(now)
            flagged = room.sweep_expiry(now)
            purged = room.purge_expired(now)
            participants = room.presence.views(now)
            total = len(participants)
            flagged_views = [
                room.messages.view(m, total, room.grace_seconds) for m in flagged
            ]

        report.rooms_swept += 1
        report.messages_ttl_pruned += len(ttl_pruned)
        report.participants_pruned += len(departed)
        report.messages_flagged += len(flagged)
        report.messages_purged += len(purged)

        room_events: List[RoomEvent] = []
        for message in ttl_pruned:
            room_events.append(events.message_removed(room.code, message.id, message.seq, "ttl"))
        for participant in departed:
            room_events.append(
                events.participant_left(room.code, participant, participants, "inactive")
            )
        for view in flagged_views:
            room_events.append(events.message_expired(room.code, view))
            self.schedule_removal(room.code, view.id, room.grace_seconds)
        for message in purged:
            room_events.append(
                events.message_removed(room.code, message.id, message.seq, "expired")
            )
        return room_events

    # ------------------------------------------------------------------
    # Grace-window removal
    # ------------------------------------------------------------------

    def schedule_removal(self, room_code: str, message_id: str, delay: float) -> None:
        """Remove *message_id* from *room_code* after *delay* seconds.

        Fire-and-forget; scheduling the same message twice is a no-op.
        """
        if message_id in self._timers:
            return
        task = asyncio.create_task(self._remove_later(room_code, message_id, delay))
        self._timers[message_id] = task
        task.add_done_callback(lambda _t: self._timers.pop(message_id, None))

    async def _remove_later(self, room_code: str, message_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.remove_now(room_code, message_id)

    async def remove_now(self, room_code: str, message_id: str) -> bool:
        """Remove one message under its room's lock.

        Returns False, silently, if the room or message is already gone.
        """
        room = self._registry.find(room_code)
        if room is None:
            return False
        async with room.lock:
            if room.closed:
                return False
            removed = room.remove_message(message_id)
        if removed is None:
            return False
        logger.debug("[Reaper] Burned message %s in room %s", message_id, room_code)
        await self._notifier.publish(
            events.message_removed(room_code, removed.id, removed.seq, "expired")
        )
        return True
