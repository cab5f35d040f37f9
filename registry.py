import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from logging_config import get_logger

logger = get_logger(__name__)


class Channel(Protocol):
    """Outbound half of a transport connection, as seen by the relay core.

    Every method must return without waiting on the network.
    """

    def send(self, message: dict) -> bool:
        """Queue a message. Returns False when the message was dropped."""
        ...

    def probe(self) -> bool:
        """Queue a liveness probe. Returns False when the probe cannot be sent."""
        ...

    def close(self) -> None:
        """Force the underlying transport closed."""
        ...


@dataclass(eq=False)
class Connection:
    id: str
    channel: Channel = field(repr=False)
    room_id: Optional[str] = None
    alive: bool = True


class ConnectionRegistry:
    """Connections currently attached to the relay, keyed by peer id."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def register(self, channel: Channel) -> Connection:
        connection_id = str(uuid.uuid4())
        while connection_id in self._connections:
            connection_id = str(uuid.uuid4())
        connection = Connection(id=connection_id, channel=channel)
        self._connections[connection_id] = connection
        logger.debug(f"Registered connection {connection_id} (total: {len(self._connections)})")
        return connection

    def unregister(self, connection_id: str) -> Optional[Connection]:
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.debug(f"Unregistered connection {connection_id} (total: {len(self._connections)})")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def snapshot(self) -> List[Connection]:
        return list(self._connections.values())

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
