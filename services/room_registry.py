import time
import uuid

from backend import RedisBackend
from constants import DEFAULT_ROOM_TTL_MINUTES, MIN_ROOM_TTL_MINUTES, MAX_ROOM_TTL_MINUTES
from redis_keys import REDIS_META_KEY
from logging_config import get_logger

logger = get_logger(__name__)


def clamp_ttl_minutes(ttl_minutes=None) -> int:
    if ttl_minutes is None:
        return DEFAULT_ROOM_TTL_MINUTES
    return max(MIN_ROOM_TTL_MINUTES, min(MAX_ROOM_TTL_MINUTES, int(ttl_minutes)))


class RoomRegistry:
    """Owns room metadata. A room exists exactly as long as its meta key does."""

    def __init__(self, backend: RedisBackend):
        self.backend = backend

    @staticmethod
    def meta_key(room_id: str) -> str:
        return REDIS_META_KEY.format(slug=room_id)

    def create(self, ttl_minutes=None) -> str:
        ttl_seconds = clamp_ttl_minutes(ttl_minutes) * 60
        room_id = uuid.uuid4().hex
        self.backend.create_hash(
            self.meta_key(room_id),
            {"created_at": int(time.time() * 1000)},
            ttl=ttl_seconds,
        )
        logger.info(f"Room {room_id} created with TTL {ttl_seconds} seconds")
        return room_id

    def remaining_ttl(self, room_id: str) -> int:
        return self.backend.remaining_ttl(self.meta_key(room_id))

    def expires_at_ms(self, room_id: str) -> int:
        return self.backend.expires_at_ms(self.meta_key(room_id))

    def exists(self, room_id: str) -> bool:
        return self.backend.exists(self.meta_key(room_id))

    def destroy(self, room_id: str):
        deleted = self.backend.delete(self.meta_key(room_id))
        logger.debug(f"Room {room_id} metadata deleted (existed={bool(deleted)})")
