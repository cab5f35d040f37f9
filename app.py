from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from constants import LIVENESS_INTERVAL_SECONDS, LOG_FILE, LOG_LEVEL, PONG_FRAME
from liveness import LivenessMonitor
from logging_config import get_logger, setup_logging
from relay import RelayEngine
from routers.rooms import rooms_router
from transport import WebSocketChannel

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(liveness_interval: float = LIVENESS_INTERVAL_SECONDS, engine: Optional[RelayEngine] = None) -> FastAPI:
    engine = engine or RelayEngine()
    monitor = LivenessMonitor(engine, interval=liveness_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        try:
            yield
        finally:
            await monitor.stop()

    app = FastAPI(title="WebRTC Signaling Relay", lifespan=lifespan)
    app.state.relay = engine
    app.state.liveness = monitor

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)

    @app.websocket("/")
    @app.websocket("/ws")
    async def signaling_endpoint(websocket: WebSocket):
        """Signaling WebSocket. Frames carry JSON records; bare ``pong`` frames answer liveness probes."""
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        channel.start()
        connection = await engine.connect(channel)
        connection_id = connection.id
        client = websocket.client.host if websocket.client else "unknown"
        logger.info(f"WebSocket connection accepted from {client} as peer {connection_id}")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(f"WebSocket disconnected normally for peer {connection_id}")
                    break

                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                if raw in (PONG_FRAME, PONG_FRAME.encode()):
                    await engine.on_liveness_response(connection_id)
                    continue
                await engine.handle_message(connection_id, raw)
        except Exception as e:
            logger.error(f"WebSocket error for peer {connection_id}: {e}", exc_info=True)
        finally:
            await engine.disconnect(connection_id)
            await channel.shutdown()
            logger.debug(f"Cleaned up peer {connection_id}")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
