import asyncio
from typing import Dict, FrozenSet, List, Optional, Set

from logging_config import get_logger
from registry import Connection, ConnectionRegistry

logger = get_logger(__name__)


class RoomTable:
    """Authoritative mapping of room id -> member connection ids.

    Rooms are created lazily by ``ensure_room``/``add_member`` and deleted as soon
    as their last member is removed. Callers performing more than one step
    (e.g. leave-then-join) must hold ``lock`` for the whole sequence.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self.lock = asyncio.Lock()
        self._rooms: Dict[str, Set[str]] = {}

    def ensure_room(self, room_id: str) -> Set[str]:
        if not room_id:
            raise ValueError("room_id must be a non-empty string")
        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = set()
            logger.info(f"Created room {room_id}")
        return room

    def add_member(self, room_id: str, connection_id: str) -> None:
        self.ensure_room(room_id).add(connection_id)

    def remove_member(self, room_id: str, connection_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            return
        room.discard(connection_id)
        if not room:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} is empty, removed")

    def members(self, room_id: str) -> FrozenSet[str]:
        return frozenset(self._rooms.get(room_id, ()))

    def find_by_id(self, room_id: str, connection_id: str) -> Optional[Connection]:
        if connection_id not in self._rooms.get(room_id, ()):
            return None
        return self.registry.get(connection_id)

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
