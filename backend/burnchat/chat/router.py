"""Room router providing HTTP (poll model) and WebSocket (push model) endpoints.

This module provides:
    - POST /api/join-room: Join or create a room
    - POST /api/send-message: Send a message
    - GET  /api/room-messages/{room_code}: Read-only room snapshot
    - POST /api/room-messages/{room_code}: Snapshot + heartbeat + read receipt
    - POST /api/heartbeat: Keep a participant online
    - POST /api/typing: Typing indicator
    - POST /api/leave-room: Explicit leave
    - GET  /api/room-info/{room_code}: Room summary
    - WebSocket /ws/rooms/{room_code}: Push channel

Both models converge on the same state: the snapshot returned by polling is
authoritative and push events only reduce latency.

WebSocket Protocol:
    1. Client sends: {type: "join", displayName?, participantId?, settings?}
       → Server sends: {type: "joined", participant, settings, participants, messages}
       → Others receive: {type: "participant-joined", ...}
    2. Client sends: {type: "message", text}
       → Everyone receives: {type: "message-sent", message}
    3. Client sends: {type: "typing", isTyping}
       → Others receive: {type: "typing-changed", ...}
    4. Client sends: {type: "poll"} → Server sends: {type: "state", ...}
    5. Client sends: {type: "heartbeat"} → Server sends: {type: "ack", active}
    6. Client sends: {type: "leave"} → Server sends: {type: "ack", active}
    Errors are reported as {type: "error", error, code}; the socket stays open.
    Frames that are not JSON objects get code "invalid_frame".
    Closing the socket does not remove the participant; presence ages out.

HTTP responses also carry the field names the browser client reads
(``userId``, ``username``, ``users``) next to the canonical ones.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .errors import ChatError
from .gateway import RoomGateway
from .models import RoomState
from .schemas import (
    JoinFrame,
    JoinRoomRequest,
    MessageFrame,
    PollRequest,
    PresenceRequest,
    SendMessageRequest,
    SettingsInput,
    TypingFrame,
    TypingRequest,
)
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])

_INVALID_FRAME = {
    "type": "error",
    "error": "Frames must be JSON objects",
    "code": "invalid_frame",
}


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _resolve_settings(service: ChatService, settings: Optional[SettingsInput]):
    if settings is None:
        return None
    return settings.resolve(service.registry.default_settings())


def _state_response(state: RoomState) -> dict:
    body = state.model_dump(mode="json")
    return {"success": True, **body, "users": body["participants"]}


# =============================================================================
# HTTP (poll model)
# =============================================================================


@router.post("/api/join-room")
async def join_room(
    body: JoinRoomRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Join a room, creating it on first join.

    Send back ``participantId`` on later requests; passing it to this
    endpoint again resumes the same participant instead of creating one.

    Returns:
        JSON with the participant identity, room settings, participant list
        and message list.
    """
    result = await service.join_room(
        body.roomCode,
        display_name=body.displayName,
        settings=_resolve_settings(service, body.settings),
        participant_id=body.participantId,
    )
    payload = result.model_dump(mode="json")
    return JSONResponse({
        "success": True,
        "participantId": result.participant.participantId,
        # Names read by the browser client
        "userId": result.participant.participantId,
        "username": result.participant.displayName,
        "users": payload["participants"],
        **payload,
    })


@router.post("/api/send-message")
async def send_message(
    body: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Send a message to a room.

    Returns:
        JSON with the created message, including viewedBy and viewCount.
    """
    message = await service.send_message(body.roomCode, body.participantId, body.text)
    return JSONResponse({"success": True, "message": message.model_dump(mode="json")})


@router.get("/api/room-messages/{room_code}")
async def get_room_state(
    room_code: str,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Read-only room snapshot (no heartbeat, no read receipt)."""
    state = await service.poll_room(room_code)
    return JSONResponse(_state_response(state))


@router.post("/api/room-messages/{room_code}")
async def poll_room_state(
    room_code: str,
    body: PollRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Room snapshot for a participant.

    Marks every live message as seen by the participant and keeps them
    online. Messages everyone has seen come back with ``isExpired: true``
    for a short grace window before they disappear. ``active: false`` means
    the participant was pruned for inactivity and must rejoin.
    """
    state = await service.poll_room(room_code, body.participantId)
    return JSONResponse(_state_response(state))


@router.post("/api/heartbeat")
async def heartbeat(
    body: PresenceRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Keep a participant online. ``active: false`` means rejoin."""
    ack = await service.heartbeat(body.roomCode, body.participantId)
    return JSONResponse({"success": True, **ack.model_dump()})


@router.post("/api/typing")
async def typing(
    body: TypingRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Set or clear the typing indicator."""
    ack = await service.set_typing(body.roomCode, body.participantId, body.isTyping)
    return JSONResponse({"success": True, **ack.model_dump()})


@router.post("/api/leave-room")
async def leave_room(
    body: PresenceRequest,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Leave a room immediately instead of waiting for presence expiry."""
    ack = await service.leave_room(body.roomCode, body.participantId)
    return JSONResponse({"success": True, **ack.model_dump()})


@router.get("/api/room-info/{room_code}")
async def room_info(
    room_code: str,
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Participant count, capacity, creation time and settings."""
    info = await service.room_info(room_code)
    return JSONResponse(info.model_dump(mode="json"))


# =============================================================================
# WebSocket (push model)
# =============================================================================


@router.websocket("/ws/rooms/{room_code}")
async def room_websocket(websocket: WebSocket, room_code: str) -> None:
    """WebSocket endpoint for one client in one room.

    Args:
        websocket: The WebSocket connection.
        room_code: The room to join.
    """
    service: ChatService = websocket.app.state.chat_service
    gateway: RoomGateway = websocket.app.state.gateway

    await websocket.accept()
    logger.info("[WS] New connection to room: %s", room_code)
    participant_id: Optional[str] = None

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                await websocket.send_json(_INVALID_FRAME)
                continue

            message_type = data.get("type")
            logger.debug("[WS] Room %s received: type=%s", room_code, message_type)

            try:
                # --- Handle JOIN (also the reconnect path) ---
                if message_type == "join":
                    frame = JoinFrame.model_validate(data)
                    result = await service.join_room(
                        room_code,
                        display_name=frame.displayName,
                        settings=_resolve_settings(service, frame.settings),
                        participant_id=frame.participantId or participant_id,
                    )
                    participant_id = result.participant.participantId
                    if websocket not in gateway.websocket_to_participant:
                        gateway.attach(websocket, room_code)
                    gateway.bind(websocket, participant_id)
                    await websocket.send_json({"type": "joined", **result.model_dump(mode="json")})
                    continue

                if participant_id is None:
                    await websocket.send_json({
                        "type": "error",
                        "error": "Join the room before sending other messages",
                        "code": "not_joined",
                    })
                    continue

                # --- Handle chat MESSAGE ---
                if message_type == "message":
                    frame = MessageFrame.model_validate(data)
                    await service.send_message(room_code, participant_id, frame.text)
                    continue

                # --- Handle TYPING indicator ---
                if message_type == "typing":
                    frame = TypingFrame.model_validate(data)
                    ack = await service.set_typing(room_code, participant_id, frame.isTyping)
                    if not ack.active:
                        await websocket.send_json({"type": "ack", **ack.model_dump()})
                    continue

                # --- Handle POLL (state resync) ---
                if message_type == "poll":
                    state = await service.poll_room(room_code, participant_id)
                    await websocket.send_json({"type": "state", **state.model_dump(mode="json")})
                    continue

                # --- Handle HEARTBEAT ---
                if message_type == "heartbeat":
                    ack = await service.heartbeat(room_code, participant_id)
                    await websocket.send_json({"type": "ack", **ack.model_dump()})
                    continue

                # --- Handle LEAVE ---
                if message_type == "leave":
                    gateway.detach(websocket)
                    ack = await service.leave_room(room_code, participant_id)
                    participant_id = None
                    await websocket.send_json({"type": "ack", **ack.model_dump()})
                    continue

                await websocket.send_json({
                    "type": "error",
                    "error": f"Unknown message type: {message_type}",
                    "code": "unknown_type",
                })

            except ChatError as exc:
                logger.info("[WS] Rejected %s in room %s: %s", message_type, room_code, exc.code)
                await websocket.send_json({"type": "error", **exc.to_dict()})
            except ValidationError as exc:
                await websocket.send_json({
                    "type": "error",
                    "error": str(exc),
                    "code": "invalid_input",
                })

    except WebSocketDisconnect:
        logger.info(
            "[WS] Connection closed in room %s (participant=%s)", room_code, participant_id
        )
    finally:
        gateway.detach(websocket)
