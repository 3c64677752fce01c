"""Room operations exposed to the transport layer.

Every operation resolves exactly one Room through the registry, mutates it
under that room's lock, then publishes the resulting events after the lock
is released. There are no cross-room transactions and no retries: each call
either fully applies or raises a ChatError without mutating anything.

Room lookup policy: only ``join_room`` creates rooms. Polling, sending and
room info on an unknown code raise RoomNotFound. Presence signals
(heartbeat, typing, leave) for an unknown room or participant are benign
no-ops reported through ``Ack.active``.
"""
import logging
import time
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..config import AppConfig
from . import events
from .errors import RoomNotFound
from .gateway import Notifier, NullNotifier
from .models import (
    MessageView,
    Participant,
    ParticipantView,
    RoomEvent,
    RoomInfo,
    RoomSettings,
    RoomState,
)
from .presence import check_anonymous
from .reaper import ExpiryReaper
from .registry import RoomRegistry
from .room import Room

logger = logging.getLogger(__name__)

# Bound on join retries when the resolved room is reaped underneath us
_MAX_JOIN_ATTEMPTS = 3


class JoinResult(BaseModel):
    """Everything a client needs after joining."""
    roomCode: str
    participant: Participant
    resumed: bool
    settings: RoomSettings
    participants: List[ParticipantView]
    messages: List[MessageView]


class Ack(BaseModel):
    """Acknowledgement for presence signals.

    ``active`` is False when the room or participant no longer exists; the
    client should rejoin with its participant id.
    """
    active: bool


def _prune(room: Room, now: float) -> List[RoomEvent]:
    """Drop inactive participants; caller holds ``room.lock``."""
    departed = room.prune_inactive(now)
    if not departed:
        return []
    participants = room.presence.views(now)
    return [events.participant_left(room.code, p, participants, "inactive") for p in departed]


class ChatService:
    """Entry point for every room operation.

    Args:
        registry: The room registry (one per process).
        notifier: Where room events are published.
        config: Application configuration.
        clock: Time source, seconds since the epoch.
        reaper: Expiry engine used for grace-window removals. Created from
            ``config.reaper`` when omitted.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        notifier: Optional[Notifier] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], float] = time.time,
        reaper: Optional[ExpiryReaper] = None,
    ) -> None:
        self.registry = registry
        self.notifier = notifier or NullNotifier()
        self.config = config or AppConfig()
        self.clock = clock
        self.reaper = reaper or ExpiryReaper(
            registry, self.notifier, self.config.reaper, clock=clock
        )

    async def _publish(self, room_events: List[RoomEvent]) -> None:
        for event in room_events:
            await self.notifier.publish(event)

    # =========================================================================
    # JoinRoom
    # =========================================================================

    async def join_room(
        self,
        room_code: str,
        display_name: Optional[str] = None,
        settings: Optional[RoomSettings] = None,
        participant_id: Optional[str] = None,
    ) -> JoinResult:
        """Join (creating if needed) a room.

        A known ``participant_id`` resumes that participant; otherwise a new
        one is admitted. Messages count as seen only once the
        participant polls.

        Raises:
            InvalidRoomCode: Bad code.
            RoomFull: The room is at capacity and this is a new identity.
            AnonymousNotAllowed: No display name in a room that requires one.
        """
        def admit(room_settings: RoomSettings) -> None:
            check_anonymous(
                room_settings, display_name, self.registry.presence_config.max_display_name
            )

        for _ in range(_MAX_JOIN_ATTEMPTS):
            now = self.clock()
            room, _created = await self.registry.get_or_create(
                room_code, settings, now, admit=admit
            )
            async with room.lock:
                if room.closed:
                    continue
                room_events = _prune(room, now)
                participant, created = room.join(now, participant_id, display_name)
                state = room.snapshot(now)
                joined = participant.model_copy()
            break
        else:
            raise RoomNotFound(room_code)

        if created:
            room_events.append(
                events.participant_joined(room.code, joined, state.participants)
            )
        await self._publish(room_events)

        logger.info(
            "[Chat] %s %s room %s as %r (%d participant(s))",
            joined.participantId,
            "joined" if created else "rejoined",
            room.code,
            joined.displayName,
            len(state.participants),
        )
        return JoinResult(
            roomCode=room.code,
            participant=joined,
            resumed=not created,
            settings=state.settings,
            participants=state.participants,
            messages=state.messages,
        )

    # =========================================================================
    # SendMessage
    # =========================================================================

    async def send_message(self, room_code: str, participant_id: str, text: str) -> MessageView:
        """Append a message to a room.

        Raises:
            RoomNotFound: Unknown or reaped room.
            ParticipantNotFound: Sender not in the room, including a sender
                pruned for inactivity (they must rejoin).
            EmptyOrTooLong: Invalid text.
        """
        room = self.registry.get(room_code)
        room_events: List[RoomEvent] = []
        try:
            async with room.lock:
                if room.closed:
                    raise RoomNotFound(room_code)
                now = self.clock()
                room_events = _prune(room, now)
                message = room.send(participant_id, text, now)
                view = room.messages.view(message, len(room.presence), room.grace_seconds)
        finally:
            # Departures are published even when the send itself is rejected.
            await self._publish(room_events)

        logger.debug(
            "[Chat] Message %s (seq=%d) from %s in room %s",
            view.id,
            view.seq,
            participant_id,
            room_code,
        )
        await self._publish([events.message_sent(room_code, view)])
        return view

    # =========================================================================
    # PollRoomState
    # =========================================================================

    async def poll_room(self, room_code: str, participant_id: Optional[str] = None) -> RoomState:
        """Return the authoritative room snapshot.

        With a participant id the poll also counts as a heartbeat and as a
        read receipt for every live message, after which fully acknowledged
        messages are flagged expired. ``state.active`` then tells whether the
        participant is still in the room; False means they were pruned and
        must rejoin.

        Raises:
            RoomNotFound: Unknown or reaped room (polling never creates rooms).
        """
        room = self.registry.get(room_code)
        flagged_views: List[MessageView] = []
        async with room.lock:
            if room.closed:
                raise RoomNotFound(room_code)
            now = self.clock()
            room_events = _prune(room, now)
            active = None
            if participant_id:
                active = room.heartbeat(participant_id, now)
            if active:
                room.mark_viewed(participant_id)
                flagged = room.sweep_expiry(now)
                total = len(room.presence)
                flagged_views = [
                    room.messages.view(m, total, room.grace_seconds) for m in flagged
                ]
            state = room.snapshot(now)
            state.active = active

        for view in flagged_views:
            room_events.append(events.message_expired(room_code, view))
            self.reaper.schedule_removal(room_code, view.id, room.grace_seconds)
        await self._publish(room_events)
        return state

    # =========================================================================
    # Presence signals
    # =========================================================================

    async def heartbeat(self, room_code: str, participant_id: str) -> Ack:
        room = self.registry.find(room_code)
        if room is None:
            return Ack(active=False)
        async with room.lock:
            if room.closed:
                return Ack(active=False)
            now = self.clock()
            room_events = _prune(room, now)
            active = room.heartbeat(participant_id, now)
        await self._publish(room_events)
        return Ack(active=active)

    async def set_typing(self, room_code: str, participant_id: str, is_typing: bool) -> Ack:
        room = self.registry.find(room_code)
        if room is None:
            return Ack(active=False)
        async with room.lock:
            if room.closed:
                return Ack(active=False)
            now = self.clock()
            room_events = _prune(room, now)
            participant = room.presence.get(participant_id)
            changed = participant is not None and participant.isTyping != is_typing
            active = room.set_typing(participant_id, is_typing, now)
            if changed:
                room_events.append(events.typing_changed(room_code, participant.model_copy()))
        await self._publish(room_events)
        return Ack(active=active)

    async def leave_room(self, room_code: str, participant_id: str) -> Ack:
        room = self.registry.find(room_code)
        if room is None:
            return Ack(active=False)
        async with room.lock:
            if room.closed:
                return Ack(active=False)
            now = self.clock()
            departed = room.leave(participant_id, now)
            participants = room.presence.views(now)

        if departed is None:
            return Ack(active=False)
        await self._publish([events.participant_left(room_code, departed, participants, "left")])
        return Ack(active=True)

    # =========================================================================
    # RoomInfo
    # =========================================================================

    async def room_info(self, room_code: str) -> RoomInfo:
        """Read-only room summary.

        Raises:
            RoomNotFound: Unknown or reaped room.
        """
        room = self.registry.get(room_code)
        async with room.lock:
            if room.closed:
                raise RoomNotFound(room_code)
            room_events = _prune(room, self.clock())
            info = room.info()
        await self._publish(room_events)
        return info

    def stats(self) -> dict:
        return self.registry.stats()
