import time
import uuid

from backend import RedisBackend
from errors import RoomNotFound
from redis_keys import REDIS_MESSAGES_KEY
from schemas.messages import Message
from services.auth import ScopedIdentity
from services.room_registry import RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)


class MessageLog:
    """Append-only message history of a room, kept on the room's expiry clock."""

    def __init__(self, backend: RedisBackend, registry: RoomRegistry, clock=time.time):
        self.backend = backend
        self.registry = registry
        self.clock = clock

    @staticmethod
    def log_key(room_id: str) -> str:
        return REDIS_MESSAGES_KEY.format(slug=room_id)

    def append(self, room_id: str, identity: ScopedIdentity, sender: str, text: str) -> Message:
        if not self.registry.exists(room_id):
            raise RoomNotFound(room_id)

        key = self.log_key(room_id)
        message = Message(
            id=uuid.uuid4().hex,
            sender=sender,
            text=text,
            timestamp=int(self.clock() * 1000),
            room_id=room_id,
            token=identity.token,
        )
        # Timestamp may be raised to the tail's if the wall clock stepped back
        message = Message(**self.backend.append_ordered(key, message.model_dump()))

        # RPUSH on a missing key creates it without a TTL, so copy the room's
        # absolute deadline and never leave the log outliving its metadata.
        deadline_ms = self.registry.expires_at_ms(room_id)
        if deadline_ms <= 0:
            self.backend.delete(key)
            logger.warning(f"Room {room_id} expired while appending message {message.id}, dropped it")
            raise RoomNotFound(room_id)
        self.backend.expire_at_ms(key, deadline_ms)

        logger.debug(f"Appended message {message.id} to room {room_id}, log expires at {deadline_ms} ms")
        return message

    def list(self, room_id: str, identity: ScopedIdentity) -> list[Message]:
        if not self.registry.exists(room_id):
            raise RoomNotFound(room_id)
        messages = [Message(**raw) for raw in self.backend.read_list(self.log_key(room_id))]
        return [message.redacted_for(identity.token) for message in messages]

    def destroy(self, room_id: str):
        self.backend.delete(self.log_key(room_id))
