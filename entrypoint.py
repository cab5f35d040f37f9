import uvicorn

from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, RELOAD
from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

logger = get_logger(__name__)


def main():
    logger.info(f"Starting WebRTC signaling relay on {HOST}:{PORT}")
    logger.info(f"HTTP: http://{HOST}:{PORT}  WS: ws://{HOST}:{PORT}")
    # Room state lives in process memory, so always a single worker
    uvicorn.run("app:app", host=HOST, port=PORT, reload=RELOAD, workers=1, log_config=None)


if __name__ == "__main__":
    main()
