import asyncio
import json

from starlette.websockets import WebSocketState

from constants import EVICTION_CLOSE_CODE, PING_FRAME
from transport import WebSocketChannel


class StubWebSocket:
    def __init__(self, fail_sends=False, hang_sends=False):
        self.client_state = WebSocketState.CONNECTED
        self.frames = []
        self.close_code = None
        self.fail_sends = fail_sends
        self.hang_sends = hang_sends

    async def send_text(self, data):
        if self.hang_sends:
            # Peer stopped reading: the write never completes
            await asyncio.Event().wait()
        if self.fail_sends:
            raise RuntimeError("socket gone")
        self.frames.append(data)

    async def close(self, code=1000):
        self.close_code = code
        self.client_state = WebSocketState.DISCONNECTED


async def settle():
    for _ in range(10):
        await asyncio.sleep(0)


async def test_send_and_probe_are_written_in_order():
    ws = StubWebSocket()
    channel = WebSocketChannel(ws)
    channel.start()

    assert channel.send({"type": "welcome", "peerId": "a"})
    assert channel.probe()
    await settle()

    assert json.loads(ws.frames[0]) == {"type": "welcome", "peerId": "a"}
    assert ws.frames[1] == PING_FRAME
    await channel.shutdown()


async def test_full_outbox_drops_without_blocking():
    ws = StubWebSocket()
    channel = WebSocketChannel(ws, max_queue=2)

    assert channel.send({"n": 1})
    assert channel.send({"n": 2})
    assert channel.send({"n": 3}) is False
    assert channel.probe() is False


async def test_close_discards_pending_frames_and_closes_socket():
    ws = StubWebSocket()
    channel = WebSocketChannel(ws, max_queue=2)
    channel.send({"n": 1})
    channel.send({"n": 2})

    channel.close()
    channel.start()
    await settle()

    assert ws.frames == []
    assert ws.close_code == EVICTION_CLOSE_CODE
    assert channel.send({"n": 3}) is False
    await channel.shutdown()


async def test_send_failure_closes_channel():
    ws = StubWebSocket(fail_sends=True)
    channel = WebSocketChannel(ws)
    channel.start()

    channel.send({"n": 1})
    await settle()

    assert channel.open is False
    assert channel.send({"n": 2}) is False
    await channel.shutdown()


async def test_close_interrupts_writer_stuck_on_slow_peer():
    ws = StubWebSocket(hang_sends=True)
    channel = WebSocketChannel(ws)
    channel.start()
    channel.send({"n": 1})
    await settle()
    assert ws.close_code is None

    channel.close()
    await settle()

    assert ws.close_code == EVICTION_CLOSE_CODE
    assert channel.send({"n": 2}) is False
    await channel.shutdown()


async def test_close_after_failed_send_still_closes_socket():
    ws = StubWebSocket(fail_sends=True)
    channel = WebSocketChannel(ws)
    channel.start()
    channel.send({"n": 1})
    await settle()
    assert channel.open is False

    channel.close()
    await settle()

    assert ws.close_code == EVICTION_CLOSE_CODE
    await channel.shutdown()


async def test_close_is_idempotent():
    ws = StubWebSocket()
    channel = WebSocketChannel(ws)
    channel.start()

    channel.close()
    channel.close()
    await channel.shutdown()

    assert ws.close_code == EVICTION_CLOSE_CODE
