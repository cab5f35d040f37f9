from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class InboundMessage(BaseModel):
    # Unknown top-level fields are ignored
    model_config = ConfigDict(extra="ignore")


class JoinMessage(InboundMessage):
    roomId: str = Field(min_length=1)

class LeaveMessage(InboundMessage):
    pass

class SignalMessage(InboundMessage):
    data: Any
    to: Optional[str] = None

class BroadcastMessage(InboundMessage):
    data: Any


MESSAGE_MODELS = {
    "join": JoinMessage,
    "leave": LeaveMessage,
    "signal": SignalMessage,
    "broadcast": BroadcastMessage,
}


def error_message(message: str) -> dict:
    return {"type": "error", "message": message}
