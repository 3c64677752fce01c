"""Room state machine and message lifecycle engine."""

from .errors import (
    AnonymousNotAllowed,
    CapacityExceeded,
    ChatError,
    EmptyOrTooLong,
    InvalidInput,
    InvalidRoomCode,
    NotFound,
    ParticipantNotFound,
    RoomFull,
    RoomNotFound,
)
from .gateway import Notifier, NullNotifier, RoomGateway
from .models import (
    EventType,
    Message,
    MessageView,
    Participant,
    ParticipantView,
    PresenceStatus,
    RoomEvent,
    RoomInfo,
    RoomSettings,
    RoomState,
)
from .reaper import ExpiryReaper, SweepReport
from .registry import RoomRegistry
from .room import Room
from .service import Ack, ChatService, JoinResult

__all__ = [
    "Ack",
    "AnonymousNotAllowed",
    "CapacityExceeded",
    "ChatError",
    "ChatService",
    "EmptyOrTooLong",
    "EventType",
    "ExpiryReaper",
    "InvalidInput",
    "InvalidRoomCode",
    "JoinResult",
    "Message",
    "MessageView",
    "NotFound",
    "Notifier",
    "NullNotifier",
    "Participant",
    "ParticipantNotFound",
    "ParticipantView",
    "PresenceStatus",
    "Room",
    "RoomEvent",
    "RoomFull",
    "RoomGateway",
    "RoomInfo",
    "RoomNotFound",
    "RoomRegistry",
    "RoomSettings",
    "RoomState",
    "SweepReport",
]
