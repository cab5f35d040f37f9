import json
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from logging_config import get_logger
from registry import Channel, Connection, ConnectionRegistry
from room_table import RoomTable
from schemas.messages import MESSAGE_MODELS, error_message

logger = get_logger(__name__)

NOT_IN_ROOM = "Join a room first"
INVALID_FORMAT = "Invalid message format"


class RelayEngine:
    """Room membership and message relay.

    Every state change runs under ``rooms.lock`` and every outbound message is
    handed to the connection's channel without awaiting delivery, so one slow
    peer never holds up the others.
    """

    def __init__(self, registry: Optional[ConnectionRegistry] = None, rooms: Optional[RoomTable] = None):
        self.registry = registry or ConnectionRegistry()
        self.rooms = rooms or RoomTable(self.registry)

    @property
    def lock(self):
        return self.rooms.lock

    # Connection lifecycle

    async def connect(self, channel: Channel) -> Connection:
        async with self.lock:
            connection = self.registry.register(channel)
            self._send(connection.id, {"type": "welcome", "peerId": connection.id})
        logger.info(f"Peer {connection.id} connected ({len(self.registry)} connected)")
        return connection

    async def disconnect(self, connection_id: str) -> None:
        """Remove a connection and its room membership. Safe to call twice."""
        async with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None:
                return
            self._leave_current_room(connection)
            self.registry.unregister(connection_id)
        logger.info(f"Peer {connection_id} disconnected ({len(self.registry)} connected)")

    async def evict(self, connection_id: str) -> None:
        connection = self.registry.get(connection_id)
        if connection is None:
            return
        logger.info(f"Evicting unresponsive peer {connection_id}")
        await self.disconnect(connection_id)
        connection.channel.close()

    async def on_liveness_response(self, connection_id: str) -> None:
        async with self.lock:
            connection = self.registry.get(connection_id)
            if connection is not None:
                connection.alive = True

    # Inbound dispatch

    async def handle_message(self, connection_id: str, raw: Union[str, bytes]) -> None:
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping message from unknown connection {connection_id}")
            return

        logger.debug(f"Received from {connection_id}: {raw[:200]!r}")
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning(f"Undecodable message from {connection_id}")
            self._send(connection_id, error_message(INVALID_FORMAT))
            return
        if not isinstance(payload, dict):
            logger.warning(f"Non-object message from {connection_id}")
            self._send(connection_id, error_message(INVALID_FORMAT))
            return

        message_type = payload.get("type")
        model = MESSAGE_MODELS.get(message_type) if isinstance(message_type, str) else None
        if model is None:
            logger.warning(f"Unknown message type {message_type!r} from {connection_id}")
            self._send(connection_id, error_message(f"Unknown message type: {message_type}"))
            return

        try:
            message = model.model_validate(payload)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or "message"
            logger.warning(f"Invalid {message_type} message from {connection_id}: {field} {error['msg']}")
            self._send(connection_id, error_message(f"Invalid {message_type} message: {field} {error['msg']}"))
            return

        if message_type == "join":
            await self.join(connection_id, message.roomId)
        elif message_type == "leave":
            await self.leave(connection_id)
        elif message_type == "signal":
            await self.signal(connection_id, message.data, message.to)
        elif message_type == "broadcast":
            await self.broadcast(connection_id, message.data)

    # Operations

    async def join(self, connection_id: str, room_id: str) -> None:
        async with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None:
                return
            if connection.room_id != room_id:
                self._leave_current_room(connection)
                self.rooms.add_member(room_id, connection_id)
                connection.room_id = room_id
                logger.info(f"Peer {connection_id} joined room {room_id}")
                notify = True
            else:
                notify = False

            peers = sorted(self.rooms.members(room_id) - {connection_id})
            self._send(connection_id, {
                "type": "joined",
                "roomId": room_id,
                "peerId": connection_id,
                "peers": peers,
            })
            if notify:
                self._fan_out(peers, {"type": "peer-joined", "peerId": connection_id})

    async def leave(self, connection_id: str) -> None:
        async with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None:
                return
            room_id = self._leave_current_room(connection)
            self._send(connection_id, {"type": "left", "roomId": room_id})

    async def signal(self, connection_id: str, data, to: Optional[str] = None) -> None:
        async with self.lock:
            connection = self._require_room(connection_id)
            if connection is None:
                return
            message = {"type": "signal", "from": connection_id, "data": data}
            if to is None:
                self._fan_out(self._others(connection), message)
                return

            target = self.rooms.find_by_id(connection.room_id, to)
            if target is None or target.id == connection_id:
                logger.warning(f"Peer {connection_id} signalled {to}, not a member of room {connection.room_id}")
                self._send(connection_id, error_message(f"Peer {to} is not in this room"))
                return
            self._send(target.id, message)

    async def broadcast(self, connection_id: str, data) -> None:
        async with self.lock:
            connection = self._require_room(connection_id)
            if connection is None:
                return
            self._fan_out(self._others(connection), {"type": "broadcast", "from": connection_id, "data": data})

    # Read-only views

    async def describe_rooms(self) -> List[Tuple[str, int]]:
        async with self.lock:
            return sorted((room_id, len(self.rooms.members(room_id))) for room_id in self.rooms.room_ids())

    async def describe_room(self, room_id: str) -> Optional[List[str]]:
        async with self.lock:
            if room_id not in self.rooms:
                return None
            return sorted(self.rooms.members(room_id))

    # Helpers; callers hold the lock

    def _leave_current_room(self, connection: Connection) -> Optional[str]:
        room_id = connection.room_id
        if room_id is None:
            return None
        self.rooms.remove_member(room_id, connection.id)
        connection.room_id = None
        logger.info(f"Peer {connection.id} left room {room_id}")
        self._fan_out(self.rooms.members(room_id), {"type": "peer-left", "peerId": connection.id})
        return room_id

    def _require_room(self, connection_id: str) -> Optional[Connection]:
        connection = self.registry.get(connection_id)
        if connection is None:
            return None
        if connection.room_id is None:
            logger.warning(f"Peer {connection_id} relayed a message outside any room")
            self._send(connection_id, error_message(NOT_IN_ROOM))
            return None
        return connection

    def _others(self, connection: Connection) -> List[str]:
        return [member for member in self.rooms.members(connection.room_id) if member != connection.id]

    def _fan_out(self, connection_ids: Iterable[str], message: dict) -> None:
        for connection_id in connection_ids:
            self._send(connection_id, message)

    def _send(self, connection_id: str, message: dict) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None:
            return False
        if not connection.channel.send(message):
            logger.debug(f"Dropped {message.get('type')} message for {connection_id}")
            return False
        return True
