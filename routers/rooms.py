from fastapi import APIRouter, HTTPException, Request

from logging_config import get_logger
from schemas.rooms import HealthResponse, RoomDetailsResponse, RoomSummary

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/", response_model=HealthResponse)
async def health(request: Request):
    relay = request.app.state.relay
    return HealthResponse(
        status="ok",
        message="WebRTC signaling server is running",
        connections=len(relay.registry),
        rooms=len(relay.rooms),
    )


@rooms_router.get("/rooms", response_model=list[RoomSummary])
async def list_rooms(request: Request):
    rooms = await request.app.state.relay.describe_rooms()
    logger.debug(f"Listing {len(rooms)} rooms")
    return [RoomSummary(room_id=room_id, member_count=count) for room_id, count in rooms]


@rooms_router.get("/rooms/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get the current members of a room.

    Returns:
    - room_id: Room identifier
    - member_count: Number of connected peers in the room
    - members: Peer ids of the connected peers
    """
    members = await request.app.state.relay.describe_room(room_id)
    if members is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomDetailsResponse(room_id=room_id, member_count=len(members), members=members)
