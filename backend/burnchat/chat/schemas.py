"""Pydantic request schemas for the room HTTP API.

Field aliases accept the names used by the browser client (``username``,
``userId``, ``historyDuration``) alongside the canonical ones.
"""
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models import RoomSettings


class SettingsInput(BaseModel):
    """Room settings requested by the first joiner (all optional)."""
    model_config = ConfigDict(populate_by_name=True)

    historyDurationHours: Optional[int] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("historyDurationHours", "historyDuration"),
    )
    maxUsers: Optional[int] = Field(default=None, gt=0)
    allowAnonymous: Optional[bool] = None

    def resolve(self, defaults: RoomSettings) -> RoomSettings:
        """Fill unspecified fields from *defaults*."""
        return defaults.model_copy(update=self.model_dump(exclude_none=True))


class JoinFrame(BaseModel):
    """Join payload shared by POST /api/join-room and the WebSocket ``join`` frame."""
    displayName: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "username"),
        description="Display name; synthesized when omitted",
    )
    participantId: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("participantId", "userId"),
        description="Previously issued participant id, to resume",
    )
    settings: Optional[SettingsInput] = None


class JoinRoomRequest(JoinFrame):
    """Request body for POST /api/join-room."""
    roomCode: str = Field(..., description="Room code (at least 3 characters)")


class SendMessageRequest(BaseModel):
    """Request body for POST /api/send-message."""
    roomCode: str
    participantId: str = Field(..., validation_alias=AliasChoices("participantId", "userId"))
    text: str


class PollRequest(BaseModel):
    """Request body for POST /api/room-messages/{room_code}."""
    participantId: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("participantId", "userId")
    )


class PresenceRequest(BaseModel):
    """Request body for heartbeat and leave."""
    roomCode: str
    participantId: str = Field(..., validation_alias=AliasChoices("participantId", "userId"))


class TypingRequest(PresenceRequest):
    """Request body for POST /api/typing."""
    isTyping: bool = True


# =============================================================================
# WebSocket frames
# =============================================================================


class MessageFrame(BaseModel):
    """WebSocket ``message`` frame."""
    text: str = ""


class TypingFrame(BaseModel):
    """WebSocket ``typing`` frame."""
    isTyping: bool = True
