import pytest

from registry import ConnectionRegistry
from relay import RelayEngine
from room_table import RoomTable


class FakeChannel:
    """Records outbound traffic instead of writing to a socket."""

    def __init__(self, accept_probes: bool = True):
        self.sent = []
        self.probes = 0
        self.closed = False
        self.accept_probes = accept_probes
        self.writable = True

    def send(self, message: dict) -> bool:
        if self.closed or not self.writable:
            return False
        self.sent.append(message)
        return True

    def probe(self) -> bool:
        if self.closed or not self.accept_probes:
            return False
        self.probes += 1
        return True

    def close(self) -> None:
        self.closed = True

    def of_type(self, message_type):
        return [m for m in self.sent if m["type"] == message_type]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def rooms(registry):
    return RoomTable(registry)


@pytest.fixture
def engine(registry, rooms):
    return RelayEngine(registry, rooms)


@pytest.fixture
def connect(engine):
    """Connect a fake peer; returns (connection, channel) with the welcome already consumed."""

    async def _connect(**kwargs):
        channel = FakeChannel(**kwargs)
        connection = await engine.connect(channel)
        channel.clear()
        return connection, channel

    return _connect
