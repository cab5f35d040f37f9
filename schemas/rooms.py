from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    message: str
    connections: int
    rooms: int

class RoomSummary(BaseModel):
    room_id: str
    member_count: int

class RoomDetailsResponse(BaseModel):
    room_id: str
    member_count: int
    members: list[str]
