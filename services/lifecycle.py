from backend import RedisBackend
from errors import RoomNotFound, Unauthorized
from schemas.messages import Message
from services.auth import CredentialIssuer, ScopedIdentity
from services.message_log import MessageLog
from services.room_registry import RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)

MESSAGE_EVENT = "message"
DESTROY_EVENT = "destroy"


class LifecycleManager:
    """Orchestrates room operations across the registry, the log and the room channel.

    Holds no state of its own; every instance can serve any room concurrently.
    Store and channel errors propagate unchanged and nothing is retried.
    """

    def __init__(self, backend: RedisBackend, registry: RoomRegistry, log: MessageLog, issuer: CredentialIssuer):
        self.backend = backend
        self.registry = registry
        self.log = log
        self.issuer = issuer

    @staticmethod
    def _check_scope(room_id: str, identity: ScopedIdentity):
        if identity.room_id != room_id:
            logger.warning(f"Identity scoped to room {identity.room_id} used against room {room_id}")
            raise Unauthorized(room_id, "credential belongs to another room")

    def create_room(self, ttl_minutes=None) -> str:
        return self.registry.create(ttl_minutes)

    def join_room(self, room_id: str) -> tuple[str, int]:
        """Issue a credential for an existing room. Returns (credential, remaining ttl)."""
        remaining = self.registry.remaining_ttl(room_id)
        if remaining <= 0:
            logger.warning(f"Join failed: Room {room_id} not found")
            raise RoomNotFound(room_id)
        logger.info(f"Issued credential for room {room_id}")
        return self.issuer.issue(room_id), remaining

    def get_ttl(self, room_id: str) -> int:
        return self.registry.remaining_ttl(room_id)

    def send_message(self, room_id: str, identity: ScopedIdentity, sender: str, text: str) -> Message:
        self._check_scope(room_id, identity)
        if not self.registry.exists(room_id):
            logger.warning(f"Send failed: Room {room_id} not found")
            raise RoomNotFound(room_id)

        # Stored before it is announced, so any subscriber can List it on receipt
        message = self.log.append(room_id, identity, sender, text)
        self.backend.publish_event(room_id, MESSAGE_EVENT, message.public())
        return message

    def list_messages(self, room_id: str, identity: ScopedIdentity) -> list[Message]:
        self._check_scope(room_id, identity)
        return self.log.list(room_id, identity)

    def destroy_room(self, room_id: str, identity: ScopedIdentity) -> bool:
        self._check_scope(room_id, identity)
        # Announce first: subscribers hear about it even if the deletes race the delivery
        self.backend.publish_event(room_id, DESTROY_EVENT, {"is_destroyed": True})
        self.registry.destroy(room_id)
        self.log.destroy(room_id)
        logger.info(f"Room {room_id} destroyed")
        return True
