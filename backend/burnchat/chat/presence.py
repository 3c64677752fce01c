"""Per-room participant presence tracking.

A participant's lifetime is tied to activity, not to a connection: a client
that reconnects with its previously issued participant id resumes the same
participant. Participants silent for longer than the inactivity threshold
are pruned.

All methods are synchronous and take ``now`` explicitly; the owning Room's
lock provides mutual exclusion.
"""
import logging
import random
from typing import Dict, List, Optional, Set, Tuple

from ..config import PresenceConfig
from .errors import AnonymousNotAllowed, RoomFull
from .identity import (
    anonymous_name,
    avatar_color,
    avatar_glyph,
    clean_display_name,
    initials,
)
from .models import Participant, ParticipantView, PresenceStatus, RoomSettings

logger = logging.getLogger(__name__)


def classify_presence(
    participant: Participant,
    now: float,
    inactive_after: float,
    away_after: float,
) -> PresenceStatus:
    """Map time since last activity onto a presence label.

    Typing overrides the online/away split.
    """
    if participant.isTyping:
        return PresenceStatus.TYPING
    idle = now - participant.lastSeen
    if idle < inactive_after:
        return PresenceStatus.ONLINE
    if idle < away_after:
        return PresenceStatus.AWAY
    return PresenceStatus.OFFLINE


def check_anonymous(
    settings: RoomSettings, display_name: Optional[str], max_length: int
) -> None:
    """Raise AnonymousNotAllowed if *settings* require a name and none is usable."""
    if not settings.allowAnonymous and not clean_display_name(display_name, max_length):
        raise AnonymousNotAllowed("This room requires a display name")


def _apply_display_name(participant: Participant, name: str) -> None:
    participant.displayName = name
    participant.avatarGlyph = avatar_glyph(name)
    participant.avatarInitials = initials(name)
    participant.color = avatar_color(name)


class PresenceTracker:
    """Tracks which participants are active in one room."""

    def __init__(
        self,
        room_code: str,
        settings: RoomSettings,
        config: PresenceConfig,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.room_code = room_code
        self.settings = settings
        self.config = config
        self._rng = rng
        # participantId -> Participant, in join order
        self._participants: Dict[str, Participant] = {}

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def get(self, participant_id: Optional[str]) -> Optional[Participant]:
        if not participant_id:
            return None
        return self._participants.get(participant_id)

    def participants(self) -> List[Participant]:
        return list(self._participants.values())

    def active_ids(self) -> Set[str]:
        return set(self._participants)

    # =========================================================================
    # Mutations
    # =========================================================================

    def join(
        self,
        now: float,
        participant_hint: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Tuple[Participant, bool]:
        """Resume an existing participant or admit a new one.

        Args:
            now: Current time.
            participant_hint: Previously issued participant id, if any.
            display_name: Requested display name (optional).

        Returns:
            Tuple of (participant, created). ``created`` is False on the
            reconnection path.

        Raises:
            RoomFull: The room is at ``maxUsers`` and this is a new identity.
            AnonymousNotAllowed: No name given and the room forbids anonymity.
        """
        name = clean_display_name(display_name, self.config.max_display_name)

        existing = self.get(participant_hint)
        if existing is not None:
            existing.lastSeen = now
            existing.isTyping = False
            if name and name != existing.displayName:
                _apply_display_name(existing, name)
            logger.debug(
                "[Presence] %s resumed in room %s", existing.participantId, self.room_code
            )
            return existing, False

        if len(self._participants) >= self.settings.maxUsers:
            raise RoomFull(self.room_code, self.settings.maxUsers)

        check_anonymous(self.settings, name, self.config.max_display_name)
        if not name:
            name = anonymous_name(self._rng)

        participant = Participant(displayName=name, joinedAt=now, lastSeen=now)
        _apply_display_name(participant, name)
        self._participants[participant.participantId] = participant
        logger.info(
            "[Presence] %s (%s) joined room %s (%d/%d)",
            participant.participantId,
            name,
            self.room_code,
            len(self._participants),
            self.settings.maxUsers,
        )
        return participant, True

    def heartbeat(self, participant_id: str, now: float) -> bool:
        """Refresh ``lastSeen``. Returns False (no-op) for unknown ids."""
        participant = self.get(participant_id)
        if participant is None:
            return False
        participant.lastSeen = now
        return True

    def set_typing(self, participant_id: str, is_typing: bool, now: float) -> bool:
        """Set the typing flag; typing also counts as activity."""
        participant = self.get(participant_id)
        if participant is None:
            return False
        participant.isTyping = is_typing
        participant.lastSeen = now
        return True

    def leave(self, participant_id: str) -> Optional[Participant]:
        participant = self._participants.pop(participant_id, None)
        if participant is not None:
            logger.info("[Presence] %s left room %s", participant_id, self.room_code)
        return participant

    def prune_inactive(self, now: float) -> List[Participant]:
        """Remove participants idle for longer than the inactivity threshold."""
        cutoff = now - self.config.inactive_after_seconds
        stale = [p for p in self._participants.values() if p.lastSeen < cutoff]
        for participant in stale:
            del self._participants[participant.participantId]
        if stale:
            logger.info(
                "[Presence] Pruned %d inactive participant(s) from room %s",
                len(stale),
                self.room_code,
            )
        return stale

    # =========================================================================
    # Reads
    # =========================================================================

    def status_of(self, participant: Participant, now: float) -> PresenceStatus:
        return classify_presence(
            participant,
            now,
            self.config.inactive_after_seconds,
            self.config.away_after_seconds,
        )

    def views(self, now: float) -> List[ParticipantView]:
        return [
            ParticipantView(**p.model_dump(), status=self.status_of(p, now))
            for p in self._participants.values()
        ]
