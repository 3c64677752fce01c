"""Builders for the RoomEvents published to the gateway."""
from typing import List

from .models import EventType, MessageView, Participant, ParticipantView, RoomEvent


def participant_joined(
    room_code: str, participant: Participant, participants: List[ParticipantView]
) -> RoomEvent:
    return RoomEvent(
        type=EventType.PARTICIPANT_JOINED,
        roomCode=room_code,
        originParticipantId=participant.participantId,
        payload={
            "participant": participant.model_dump(mode="json"),
            "participants": [p.model_dump(mode="json") for p in participants],
        },
    )


def participant_left(
    room_code: str,
    participant: Participant,
    participants: List[ParticipantView],
    reason: str,
) -> RoomEvent:
    return RoomEvent(
        type=EventType.PARTICIPANT_LEFT,
        roomCode=room_code,
        originParticipantId=participant.participantId,
        payload={
            "participant": participant.model_dump(mode="json"),
            "participants": [p.model_dump(mode="json") for p in participants],
            "reason": reason,
        },
    )


def message_sent(room_code: str, message: MessageView) -> RoomEvent:
    return RoomEvent(
        type=EventType.MESSAGE_SENT,
        roomCode=room_code,
        originParticipantId=message.participantId,
        payload={"message": message.model_dump(mode="json")},
    )


def typing_changed(room_code: str, participant: Participant) -> RoomEvent:
    return RoomEvent(
        type=EventType.TYPING_CHANGED,
        roomCode=room_code,
        originParticipantId=participant.participantId,
        payload={
            "participantId": participant.participantId,
            "displayName": participant.displayName,
            "isTyping": participant.isTyping,
        },
    )


def message_expired(room_code: str, message: MessageView) -> RoomEvent:
    return RoomEvent(
        type=EventType.MESSAGE_EXPIRED,
        roomCode=room_code,
        payload={
            "messageId": message.id,
            "seq": message.seq,
            "expiresAt": message.expiresAt,
        },
    )


def message_removed(room_code: str, message_id: str, seq: int, reason: str) -> RoomEvent:
    return RoomEvent(
        type=EventType.MESSAGE_REMOVED,
        roomCode=room_code,
        payload={"messageId": message_id, "seq": seq, "reason": reason},
    )
