"""Room registry: maps room codes to Room aggregates.

The registry is the only writer of the code -> Room mapping (insert on first
join, delete on idle reap). It has its own lock, independent of any Room's
lock, so joins to different rooms proceed while one room is being created
or reaped.

Lock order is always registry -> room, and the registry never waits on a
room lock: a room that is busy during a reap pass is simply skipped.
"""
import asyncio
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple

from ..config import MessagesConfig, PresenceConfig, RoomsConfig
from .errors import InvalidRoomCode, RoomNotFound
from .models import RoomSettings
from .room import Room

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every Room in the process."""

    def __init__(
        self,
        rooms_config: Optional[RoomsConfig] = None,
        presence_config: Optional[PresenceConfig] = None,
        messages_config: Optional[MessagesConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.rooms_config = rooms_config or RoomsConfig()
        self.presence_config = presence_config or PresenceConfig()
        self.messages_config = messages_config or MessagesConfig()
        self._rng = rng
        self._rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: object) -> bool:
        return code in self._rooms

    def default_settings(self) -> RoomSettings:
        defaults = self.rooms_config.defaults
        return RoomSettings(
            historyDurationHours=defaults.history_duration_hours,
            maxUsers=defaults.max_users,
            allowAnonymous=defaults.allow_anonymous,
        )

    def validate_code(self, code: Optional[str]) -> str:
        """Return *code* unchanged if acceptable, else raise InvalidRoomCode."""
        min_len = self.rooms_config.min_code_length
        max_len = self.rooms_config.max_code_length
        if not code or len(code) < min_len:
            raise InvalidRoomCode(f"Room code must be at least {min_len} characters")
        if len(code) > max_len:
            raise InvalidRoomCode(f"Room code must be at most {max_len} characters")
        return code

    async def get_or_create(
        self,
        code: str,
        settings: Optional[RoomSettings],
        now: float,
        admit: Optional[Callable[[RoomSettings], None]] = None,
    ) -> Tuple[Room, bool]:
        """Return the room for *code*, creating it with *settings* if unknown.

        Settings are ignored when the room already exists (first join wins).
        When the room is new, *admit* is called with its settings before the
        room is inserted; if it raises, nothing is created.

        Returns:
            Tuple of (room, created).

        Raises:
            InvalidRoomCode: The code is too short or too long.
        """
        self.validate_code(code)
        async with self._lock:
            room = self._rooms.get(code)
            if room is not None:
                return room, False
            settings = settings or self.default_settings()
            if admit is not None:
                admit(settings)
            room = Room(
                code,
                settings,
                now,
                presence_config=self.presence_config,
                messages_config=self.messages_config,
                rng=self._rng,
            )
            self._rooms[code] = room
        logger.info(
            "[Registry] Created room %s (maxUsers=%d, history=%dh). %d room(s) active",
            code,
            room.settings.maxUsers,
            room.settings.historyDurationHours,
            len(self._rooms),
        )
        return room, True

    def find(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def get(self, code: str) -> Room:
        """Return the room for *code*.

        Raises:
            RoomNotFound: No such room.
        """
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFound(code)
        return room

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    async def reap_idle(self, now: float) -> List[str]:
        """Delete every room that has been empty for the idle timeout.

        Returns:
            Codes of the rooms removed.
        """
        timeout = self.rooms_config.idle_timeout_seconds
        reaped = []
        async with self._lock:
            for code, room in list(self._rooms.items()):
                if room.lock.locked():
                    continue
                if room.is_idle(now, timeout):
                    room.closed = True
                    del self._rooms[code]
                    reaped.append(code)
        if reaped:
            logger.info(
                "[Registry] Reaped %d idle room(s): %s. %d room(s) active",
                len(reaped),
                ", ".join(reaped),
                len(self._rooms),
            )
        return reaped

    def stats(self) -> Dict[str, int]:
        return {
            "rooms": len(self._rooms),
            "users": sum(len(room.presence) for room in self._rooms.values()),
        }
