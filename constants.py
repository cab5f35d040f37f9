import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

LIVENESS_INTERVAL_SECONDS = float(os.getenv("LIVENESS_INTERVAL_SECONDS", 30))
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))

# Out-of-band liveness frames, never decoded as signaling messages
PING_FRAME = "ping"
PONG_FRAME = "pong"

# 1001 = going away
EVICTION_CLOSE_CODE = 1001

if LIVENESS_INTERVAL_SECONDS <= 0:
    raise ValueError(f"LIVENESS_INTERVAL_SECONDS must be positive, got {LIVENESS_INTERVAL_SECONDS}")
