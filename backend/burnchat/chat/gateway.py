"""Delivery/notification gateway.

Turns room state changes into outbound notifications. Push delivery is an
optimization over the authoritative snapshot read: a client that misses an
event (or only polls) converges by fetching ``RoomState``.

Implementations:
    - NullNotifier: pull-only deployments; events are dropped.
    - RoomGateway: WebSocket push, one connection list per room.

Delivery is best effort and at-least-once from the client's point of view
(events plus snapshot). Message events carry the per-room ``seq`` so a
client can restore send order if two broadcasts interleave.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent message delivery
    - Failed connections are automatically removed during broadcast
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from fastapi import WebSocket

from .models import EventType, RoomEvent

logger = logging.getLogger(__name__)

# Events the originating participant does not need echoed back
_SKIP_ORIGIN = {EventType.TYPING_CHANGED}


class Notifier(ABC):
    """Abstract sink for room events."""

    @abstractmethod
    async def publish(self, event: RoomEvent) -> None:
        """Deliver *event* to the other participants of its room."""


class NullNotifier(Notifier):
    """Drops every event. Clients rely on polling alone."""

    async def publish(self, event: RoomEvent) -> None:
        return None


class RoomGateway(Notifier):
    """Fans room events out to connected WebSocket clients.

    A connection is attached to a room when the socket opens and bound to a
    participant once that client joins. Detaching a socket never removes the
    participant: presence ages out on its own, so a reconnect resumes the
    same identity.
    """

    def __init__(self) -> None:
        # room_code -> list of active WebSocket connections
        self.active_connections: Dict[str, List[WebSocket]] = {}

        # websocket -> (room_code, participantId or None until joined)
        self.websocket_to_participant: Dict[WebSocket, Tuple[str, Optional[str]]] = {}

    def attach(self, websocket: WebSocket, room_code: str) -> None:
        self.active_connections.setdefault(room_code, []).append(websocket)
        self.websocket_to_participant[websocket] = (room_code, None)

    def bind(self, websocket: WebSocket, participant_id: str) -> None:
        """Associate an attached socket with the participant it speaks for."""
        room_code, _ = self.websocket_to_participant[websocket]
        self.websocket_to_participant[websocket] = (room_code, participant_id)

    def participant_for(self, websocket: WebSocket) -> Optional[str]:
        entry = self.websocket_to_participant.get(websocket)
        return entry[1] if entry else None

    def detach(self, websocket: WebSocket) -> Optional[Tuple[str, Optional[str]]]:
        """Forget a socket. Returns its (room_code, participantId) if known."""
        entry = self.websocket_to_participant.pop(websocket, None)
        if entry is None:
            return None
        room_code = entry[0]
        connections = self.active_connections.get(room_code)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.active_connections[room_code]
        return entry

    def connection_count(self, room_code: str) -> int:
        return len(self.active_connections.get(room_code, []))

    def drop_room(self, room_code: str) -> None:
        """Forget every connection of a reaped room."""
        for websocket in self.active_connections.pop(room_code, []):
            self.websocket_to_participant.pop(websocket, None)

    async def publish(self, event: RoomEvent) -> None:
        message = {
            "type": event.type.value,
            "roomCode": event.roomCode,
            **event.payload,
        }
        exclude = event.originParticipantId if event.type in _SKIP_ORIGIN else None
        await self.broadcast(message, event.roomCode, exclude_participant=exclude)

    async def broadcast(
        self,
        message: dict,
        room_code: str,
        exclude_participant: Optional[str] = None,
    ) -> None:
        """Send *message* to every connection in a room concurrently.

        Args:
            message: JSON-serializable payload.
            room_code: Target room.
            exclude_participant: Skip sockets bound to this participant.
        """
        connections = [
            conn
            for conn in self.active_connections.get(room_code, [])
            if exclude_participant is None
            or self.participant_for(conn) != exclude_participant
        ]
        if not connections:
            return

        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in connections],
            return_exceptions=True,
        )

        failed_connections = [
            conn for conn, success in zip(connections, results) if success is not True
        ]
        for conn in failed_connections:
            self.detach(conn)
            logger.debug("Removed dead connection from room %s", room_code)

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug("Failed to send to connection: %s", e)
            return False
