"""Data models for rooms, participants and messages.

Field names are camelCase because these models are serialized to clients
as-is (``model_dump(mode="json")``), the same shape the browser client reads.
"""
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class PresenceStatus(str, Enum):
    """Presence label derived from time since last activity.

    Attributes:
        TYPING: Participant is composing a message (overrides everything).
        ONLINE: Active within the inactivity threshold.
        AWAY: Idle, but within the away threshold.
        OFFLINE: Idle past the away threshold (normally already pruned).
    """
    TYPING = "typing"
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class RoomSettings(BaseModel):
    """Per-room settings, fixed by the first joiner.

    Attributes:
        historyDurationHours: Retention window for messages (TTL pruning).
        maxUsers: Maximum simultaneous participants.
        allowAnonymous: Whether joins without a display name are accepted.
    """
    model_config = ConfigDict(frozen=True)

    historyDurationHours: int = Field(default=24, gt=0)
    maxUsers: int = Field(default=50, gt=0)
    allowAnonymous: bool = True


class Participant(BaseModel):
    """One chat identity in a room, independent of any connection."""
    participantId: str = Field(default_factory=lambda: str(uuid.uuid4()))
    displayName: str
    joinedAt: float
    lastSeen: float
    isTyping: bool = False
    avatarGlyph: str = ""
    avatarInitials: str = ""
    color: str = ""


class ParticipantView(BaseModel):
    """Read-only projection of a participant with its presence label."""
    participantId: str
    displayName: str
    joinedAt: float
    lastSeen: float
    isTyping: bool
    avatarGlyph: str
    avatarInitials: str
    color: str
    status: PresenceStatus


class Message(BaseModel):
    """A stored chat message.

    Attributes:
        id: Unique message identifier.
        seq: Per-room sequence number (strictly increasing in send order).
        participantId: Author's participant id.
        displayName: Author's display name at send time.
        text: Message body.
        createdAt: Unix timestamp (seconds) of the send.
        viewedBy: Participant ids that have seen the message; only grows.
        isExpired: Set once every active participant has seen it.
        expiredAt: When ``isExpired`` was set.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    seq: int
    participantId: str
    displayName: str
    text: str
    createdAt: float
    viewedBy: Set[str] = Field(default_factory=set)
    isExpired: bool = False
    expiredAt: Optional[float] = None


class MessageView(BaseModel):
    """Read-only projection of a message for "seen by N/M" display."""
    id: str
    seq: int
    participantId: str
    displayName: str
    text: str
    createdAt: float
    viewedBy: List[str]
    viewCount: int
    totalParticipants: int
    isExpired: bool
    expiresAt: Optional[float] = None


class EventType(str, Enum):
    PARTICIPANT_JOINED = "participant-joined"
    PARTICIPANT_LEFT = "participant-left"
    MESSAGE_SENT = "message-sent"
    TYPING_CHANGED = "typing-changed"
    MESSAGE_EXPIRED = "message-expired"
    MESSAGE_REMOVED = "message-removed"


class RoomEvent(BaseModel):
    """A room state change handed to the notification gateway."""
    type: EventType
    roomCode: str
    originParticipantId: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class RoomState(BaseModel):
    """Authoritative snapshot of a room, sufficient to rebuild client state.

    Attributes:
        active: For a poll made on behalf of a participant, whether that
            participant is still in the room (False means rejoin). None for
            read-only snapshots.
    """
    roomCode: str
    settings: RoomSettings
    participants: List[ParticipantView]
    messages: List[MessageView]
    active: Optional[bool] = None


class RoomInfo(BaseModel):
    """Read-only room summary (no message content)."""
    code: str
    userCount: int
    maxUsers: int
    createdAt: float
    settings: RoomSettings
