from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from constants import AUTH_COOKIE_NAME
from dependencies import get_lifecycle, get_scoped_identity
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, JoinRoomResponse, TtlResponse, DestroyRoomResponse
from services.auth import ScopedIdentity
from services.lifecycle import LifecycleManager
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@rooms_router.post("", status_code=201, response_model=CreateRoomResponse)
async def create_room(
    request: Request,
    room: Optional[CreateRoomRequest] = None,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    # { "ttl_minutes": 10 }  // optional, 1-120, default 10
    ttl_minutes = room.ttl_minutes if room else None
    logger.info(f"Room creation request from {_client_host(request)}, ttl_minutes: {ttl_minutes}")
    room_id = lifecycle.create_room(ttl_minutes)
    return CreateRoomResponse(room_id=room_id, ttl=lifecycle.get_ttl(room_id))


@rooms_router.post("/{room_id}/join", response_model=JoinRoomResponse)
async def join_room(
    room_id: str,
    request: Request,
    response: Response,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    logger.info(f"Join room request for {room_id} from {_client_host(request)}")
    credential, ttl = lifecycle.join_room(room_id)
    response.set_cookie(
        AUTH_COOKIE_NAME,
        credential,
        max_age=ttl,
        httponly=True,
        samesite="strict",
        secure=request.url.scheme == "https",
    )
    return JoinRoomResponse(room_id=room_id, token=credential, ttl=ttl)


@rooms_router.get("/{room_id}/ttl", response_model=TtlResponse)
async def get_ttl(room_id: str, lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return TtlResponse(ttl=lifecycle.get_ttl(room_id))


@rooms_router.delete("/{room_id}", response_model=DestroyRoomResponse)
async def destroy_room(
    room_id: str,
    request: Request,
    identity: ScopedIdentity = Depends(get_scoped_identity),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    logger.info(f"Destroy room request for {room_id} from {_client_host(request)}")
    return DestroyRoomResponse(success=lifecycle.destroy_room(room_id, identity))
