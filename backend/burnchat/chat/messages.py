"""Per-room message store with read tracking and two expiry paths.

Message lifecycle::

    Active (unseen by some) -> Active (seen by all active) -> Expired (grace) -> Removed
                  \\_________________ TTL pruning _______________________________/

* Acknowledgement expiry: once every currently active participant has seen
  a message, and at least two participants are active, the message is
  flagged ``isExpired`` and kept for a short grace window so clients can
  render the "burned" state.
* TTL pruning: messages older than the room's retention window are removed
  unconditionally.

All methods are synchronous and take ``now`` explicitly; the owning Room's
lock provides mutual exclusion.
"""
import logging
from typing import Iterable, List, Optional, Set

from .errors import EmptyOrTooLong
from .models import Message, MessageView

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class MessageStore:
    """Append-only (until removal) ordered sequence of messages for one room."""

    def __init__(self, room_code: str, max_length: int = 500) -> None:
        self.room_code = room_code
        self.max_length = max_length
        self._messages: List[Message] = []
        self._next_seq = 1

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def messages(self) -> List[Message]:
        return list(self._messages)

    # =========================================================================
    # Mutations
    # =========================================================================

    def append(self, author_id: str, author_name: str, text: str, now: float) -> Message:
        """Store a new message; the author implicitly has seen it.

        Raises:
            EmptyOrTooLong: ``text`` is blank or longer than ``max_length``.
        """
        body = (text or "").strip()
        if not body:
            raise EmptyOrTooLong("Message text cannot be empty")
        if len(body) > self.max_length:
            raise EmptyOrTooLong(
                f"Message text exceeds {self.max_length} characters"
            )

        message = Message(
            seq=self._next_seq,
            participantId=author_id,
            displayName=author_name,
            text=body,
            createdAt=now,
            viewedBy={author_id},
        )
        self._next_seq += 1
        self._messages.append(message)
        return message

    def mark_viewed(self, participant_id: str) -> List[Message]:
        """Record that *participant_id* has seen every live message.

        Expired messages are frozen and left untouched.

        Returns:
            Messages whose ``viewedBy`` grew.
        """
        changed = []
        for message in self._messages:
            if message.isExpired or participant_id in message.viewedBy:
                continue
            message.viewedBy.add(participant_id)
            changed.append(message)
        return changed

    def sweep_expiry(self, active_ids: Iterable[str], now: float) -> List[Message]:
        """Flag messages seen by every active participant.

        A lone participant never burns their own messages: the active set
        must contain more than one participant.

        Returns:
            Messages newly flagged as expired.
        """
        active: Set[str] = set(active_ids)
        if len(active) <= 1:
            return []

        flagged = []
        for message in self._messages:
            if message.isExpired:
                continue
            if message.viewedBy >= active:
                message.isExpired = True
                message.expiredAt = now
                flagged.append(message)
        if flagged:
            logger.debug(
                "[Messages] Flagged %d message(s) expired in room %s",
                len(flagged),
                self.room_code,
            )
        return flagged

    def remove(self, message_id: str) -> Optional[Message]:
        """Permanently remove one message. No-op when already gone."""
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return self._messages.pop(index)
        return None

    def purge_expired(self, now: float, grace_seconds: float) -> List[Message]:
        """Remove flagged messages whose grace window has elapsed."""
        purged = [m for m in self._messages if self._past_grace(m, now, grace_seconds)]
        if purged:
            self._messages = [
                m for m in self._messages if not self._past_grace(m, now, grace_seconds)
            ]
        return purged

    def prune_by_ttl(self, retention_hours: float, now: float) -> List[Message]:
        """Remove every message created before the retention cutoff."""
        cutoff = now - retention_hours * SECONDS_PER_HOUR
        pruned = [m for m in self._messages if m.createdAt < cutoff]
        if pruned:
            self._messages = [m for m in self._messages if m.createdAt >= cutoff]
            logger.info(
                "[Messages] TTL pruned %d message(s) from room %s",
                len(pruned),
                self.room_code,
            )
        return pruned

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(
        self, now: float, total_participants: int, grace_seconds: float
    ) -> List[MessageView]:
        """Project live messages for display.

        Messages past their grace window are hidden even if the removal timer
        has not fired yet.
        """
        return [
            self.view(m, total_participants, grace_seconds)
            for m in self._messages
            if not self._past_grace(m, now, grace_seconds)
        ]

    @staticmethod
    def view(message: Message, total_participants: int, grace_seconds: float) -> MessageView:
        expires_at = None
        if message.isExpired and message.expiredAt is not None:
            expires_at = message.expiredAt + grace_seconds
        return MessageView(
            id=message.id,
            seq=message.seq,
            participantId=message.participantId,
            displayName=message.displayName,
            text=message.text,
            createdAt=message.createdAt,
            viewedBy=sorted(message.viewedBy),
            viewCount=len(message.viewedBy),
            totalParticipants=total_participants,
            isExpired=message.isExpired,
            expiresAt=expires_at,
        )

    @staticmethod
    def _past_grace(message: Message, now: float, grace_seconds: float) -> bool:
        return (
            message.isExpired
            and message.expiredAt is not None
            and now >= message.expiredAt + grace_seconds
        )
