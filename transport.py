import asyncio
import json
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from constants import EVICTION_CLOSE_CODE, OUTBOUND_QUEUE_SIZE, PING_FRAME
from logging_config import get_logger

logger = get_logger(__name__)


class WebSocketChannel:
    """Non-blocking outbound side of one WebSocket connection.

    Frames are queued on a bounded outbox and written by a dedicated writer
    task. A full outbox or a closed socket drops the frame.
    """

    def __init__(self, websocket: WebSocket, max_queue: int = OUTBOUND_QUEUE_SIZE):
        self.websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def open(self) -> bool:
        return not self._closing and self.websocket.client_state == WebSocketState.CONNECTED

    def start(self) -> None:
        if self._closing:
            return
        self._writer = asyncio.create_task(self._drain())

    def send(self, message: dict) -> bool:
        return self._enqueue(json.dumps(message))

    def probe(self) -> bool:
        return self._enqueue(PING_FRAME)

    def close(self) -> None:
        """Force the socket closed, even if the writer is stuck on a slow peer or has died."""
        if self._closer is not None:
            return
        self._closing = True
        if self._writer is not None:
            self._writer.cancel()
        self._closer = asyncio.create_task(self._close_socket(self._writer))

    async def shutdown(self) -> None:
        """Stop the writer task. Called once the receive loop has ended."""
        self._closing = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
        if self._closer is not None:
            await self._closer

    def _enqueue(self, frame: str) -> bool:
        if not self.open:
            return False
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full, dropping frame")
            return False
        return True

    async def _close_socket(self, writer: Optional[asyncio.Task]) -> None:
        if writer is not None:
            try:
                await writer
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Writer task ended with error: {e}")
        # Pending frames are never written once closing
        while not self._outbox.empty():
            self._outbox.get_nowait()
        try:
            await self.websocket.close(code=EVICTION_CLOSE_CODE)
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self.websocket.send_text(frame)
            except Exception as e:
                logger.debug(f"Error sending frame, closing channel: {e}")
                self._closing = True
                return
