"""Room aggregate: presence + messages + settings behind one lock.

The Room owns its participants and messages exclusively. Its methods are
plain synchronous state transitions; callers must hold ``room.lock`` for
every mutation so that all operations on one room are serialized while
operations on different rooms never contend.
"""
import asyncio
import logging
import random
from typing import List, Optional, Tuple

from ..config import MessagesConfig, PresenceConfig
from .errors import ParticipantNotFound
from .messages import MessageStore
from .models import Message, Participant, RoomInfo, RoomSettings, RoomState
from .presence import PresenceTracker

logger = logging.getLogger(__name__)


class Room:
    """A single chat room.

    Attributes:
        code: Room code (case-sensitive).
        settings: Immutable settings chosen by the first joiner.
        createdAt: Creation time.
        lock: Serializes all mutations of this room.
        closed: Set by the registry when the room is reaped; a caller that
            resolved the room earlier must treat it as gone.
        emptySince: When the participant set last became empty, None while
            occupied.
    """

    def __init__(
        self,
        code: str,
        settings: RoomSettings,
        created_at: float,
        presence_config: Optional[PresenceConfig] = None,
        messages_config: Optional[MessagesConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.code = code
        self.settings = settings
        self.createdAt = created_at
        self.messages_config = messages_config or MessagesConfig()
        self.presence = PresenceTracker(
            code, settings, presence_config or PresenceConfig(), rng=rng
        )
        self.messages = MessageStore(code, max_length=self.messages_config.max_length)
        self.lock = asyncio.Lock()
        self.closed = False
        self.emptySince: Optional[float] = created_at

    def __repr__(self) -> str:
        return (
            f"Room(code={self.code!r}, participants={len(self.presence)}, "
            f"messages={len(self.messages)})"
        )

    @property
    def grace_seconds(self) -> float:
        return self.messages_config.expiry_grace_seconds

    def _note_occupancy(self, now: float) -> None:
        if len(self.presence) == 0:
            if self.emptySince is None:
                self.emptySince = now
        else:
            self.emptySince = None

    # =========================================================================
    # Presence
    # =========================================================================

    def join(
        self,
        now: float,
        participant_hint: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[Participant, bool]:
        result = self.presence.join(now, participant_hint, display_name)
        self._note_occupancy(now)
        return result

    def heartbeat(self, participant_id: str, now: float) -> bool:
        return self.presence.heartbeat(participant_id, now)

    def set_typing(self, participant_id: str, is_typing: bool, now: float) -> bool:
        return self.presence.set_typing(participant_id, is_typing, now)

    def leave(self, participant_id: str, now: float) -> Optional[Participant]:
        participant = self.presence.leave(participant_id)
        self._note_occupancy(now)
        return participant

    def prune_inactive(self, now: float) -> List[Participant]:
        pruned = self.presence.prune_inactive(now)
        self._note_occupancy(now)
        return pruned

    # =========================================================================
    # Messages
    # =========================================================================

    def send(self, participant_id: str, text: str, now: float) -> Message:
        """Append a message from a current participant.

        Raises:
            ParticipantNotFound: The author is not (or no longer) in the room.
            EmptyOrTooLong: Invalid text.
        """
        author = self.presence.get(participant_id)
        if author is None:
            raise ParticipantNotFound(participant_id)
        message = self.messages.append(author.participantId, author.displayName, text, now)
        author.lastSeen = now
        author.isTyping = False
        return message

    def mark_viewed(self, participant_id: str) -> List[Message]:
        return self.messages.mark_viewed(participant_id)

    def sweep_expiry(self, now: float) -> List[Message]:
        """Flag fully acknowledged messages against the current active set."""
        return self.messages.sweep_expiry(self.presence.active_ids(), now)

    def purge_expired(self, now: float) -> List[Message]:
        return self.messages.purge_expired(now, self.grace_seconds)

    def prune_by_ttl(self, now: float) -> List[Message]:
        return self.messages.prune_by_ttl(self.settings.historyDurationHours, now)

    def remove_message(self, message_id: str) -> Optional[Message]:
        return self.messages.remove(message_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def is_idle(self, now: float, idle_timeout: float) -> bool:
        """True when the room has had no participants for *idle_timeout*."""
        return (
            len(self.presence) == 0
            and self.emptySince is not None
            and now - self.emptySince >= idle_timeout
        )

    def snapshot(self, now: float) -> RoomState:
        total = len(self.presence)
        return RoomState(
            roomCode=self.code,
            settings=self.settings,
            participants=self.presence.views(now),
            messages=self.messages.snapshot(now, total, self.grace_seconds),
        )

    def info(self) -> RoomInfo:
        return RoomInfo(
            code=self.code,
            userCount=len(self.presence),
            maxUsers=self.settings.maxUsers,
            createdAt=self.createdAt,
            settings=self.settings,
        )
