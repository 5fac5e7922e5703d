from pydantic import BaseModel, Field
from typing import Optional

from constants import MIN_ROOM_TTL_MINUTES, MAX_ROOM_TTL_MINUTES


class CreateRoomRequest(BaseModel):
    ttl_minutes: Optional[int] = Field(default=None, ge=MIN_ROOM_TTL_MINUTES, le=MAX_ROOM_TTL_MINUTES)

class CreateRoomResponse(BaseModel):
    room_id: str
    ttl: int

class JoinRoomResponse(BaseModel):
    room_id: str
    token: str
    ttl: int

class TtlResponse(BaseModel):
    ttl: int

class DestroyRoomResponse(BaseModel):
    success: bool
