"""Error taxonomy for room operations.

Every rejected operation raises a subclass of :class:`ChatError` before any
state is touched, so callers never observe a partial mutation. The transport
layer maps ``status_code`` and ``code`` onto its own error format.
"""
from typing import Any, Dict


class ChatError(Exception):
    """Base class for all expected (client-caused) failures."""

    code: str = "chat_error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


# =============================================================================
# InvalidInput
# =============================================================================


class InvalidInput(ChatError):
    code = "invalid_input"
    status_code = 400


class InvalidRoomCode(InvalidInput):
    code = "invalid_room_code"


class EmptyOrTooLong(InvalidInput):
    code = "empty_or_too_long"


class AnonymousNotAllowed(InvalidInput):
    code = "anonymous_not_allowed"


# =============================================================================
# NotFound
# =============================================================================


class NotFound(ChatError):
    code = "not_found"
    status_code = 404


class RoomNotFound(NotFound):
    code = "room_not_found"

    def __init__(self, room_code: str) -> None:
        super().__init__("Room not found")
        self.room_code = room_code


class ParticipantNotFound(NotFound):
    code = "participant_not_found"

    def __init__(self, participant_id: str) -> None:
        super().__init__("Participant not found in room")
        self.participant_id = participant_id


# =============================================================================
# CapacityExceeded
# =============================================================================


class CapacityExceeded(ChatError):
    code = "capacity_exceeded"
    status_code = 409


class RoomFull(CapacityExceeded):
    code = "room_full"

    def __init__(self, room_code: str, max_users: int) -> None:
        super().__init__("Room is full")
        self.room_code = room_code
        self.max_users = max_users
