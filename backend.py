import redis
import json
from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD
from redis_keys import REDIS_ROOM_CHANNEL
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """Thin wrapper over the Redis primitives the room services rely on.

    Every call is a single Redis command or one MULTI block on a single key,
    so each is atomic on its own key. Nothing here spans keys.
    """

    def __init__(self, redis_client, pubsub_client=None):
        self.redis_client = redis_client
        # Separate connection for pub/sub (required by Redis)
        self.pubsub_client = pubsub_client or redis_client

    def create_hash(self, key: str, data: dict, ttl: int):
        # Convert dict values to strings for Redis hash, skip None values
        data_str = {}
        for k, v in data.items():
            if v is None:
                continue
            if isinstance(v, (dict, list)):
                data_str[k] = json.dumps(v)
            else:
                data_str[k] = str(v)
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.hset(key, mapping=data_str)
        pipe.expire(key, ttl)
        pipe.execute()
        logger.debug(f"Wrote hash {key} with TTL {ttl} seconds")

    def exists(self, key: str) -> bool:
        return self.redis_client.exists(key) > 0

    def remaining_ttl(self, key: str) -> int:
        """Seconds until ``key`` expires, 0 if it is gone or has no expiry."""
        ttl = self.redis_client.ttl(key)
        return ttl if ttl > 0 else 0

    def expires_at_ms(self, key: str) -> int:
        """Absolute expiry of ``key`` in unix milliseconds, 0 if it is gone or has no expiry."""
        deadline = self.redis_client.pexpiretime(key)
        return deadline if deadline > 0 else 0

    def expire_at_ms(self, key: str, deadline_ms: int) -> bool:
        # A deadline already in the past deletes the key
        applied = bool(self.redis_client.pexpireat(key, deadline_ms))
        logger.debug(f"Set expiry of {key} to {deadline_ms} ms (applied={applied})")
        return applied

    def delete(self, *keys: str) -> int:
        deleted = self.redis_client.delete(*keys)
        logger.debug(f"Deleted {deleted} of {len(keys)} keys: {keys}")
        return deleted

    def append_ordered(self, key: str, value: dict) -> dict:
        """RPUSH ``value`` with its ``timestamp`` raised to at least the current tail's.

        Runs under WATCH so a concurrent append to the same list forces a retry
        instead of landing out of timestamp order.
        """
        def _append(pipe):
            tail = pipe.lindex(key, -1)
            if tail is not None:
                value["timestamp"] = max(value["timestamp"], json.loads(tail)["timestamp"])
            pipe.multi()
            pipe.rpush(key, json.dumps(value))

        self.redis_client.transaction(_append, key)
        return value

    def read_list(self, key: str) -> list:
        return [json.loads(item) for item in self.redis_client.lrange(key, 0, -1)]

    def get_room_channel_name(self, room_id: str) -> str:
        """Get the Redis pub/sub channel name for a room."""
        return REDIS_ROOM_CHANNEL.format(slug=room_id)

    def publish_event(self, room_id: str, event: str, data: dict) -> int:
        """Publish a named event to the room's Redis pub/sub channel."""
        channel = self.get_room_channel_name(room_id)
        subscribers = self.redis_client.publish(channel, json.dumps({"event": event, "data": data}))
        logger.debug(f"Published {event} event to room {room_id} channel {channel}, {subscribers} subscribers")
        return subscribers

    def subscribe_to_room(self, room_id: str):
        """Create a pubsub subscriber for a room channel."""
        channel = self.get_room_channel_name(room_id)
        logger.debug(f"Subscribing to Redis channel {channel} for room {room_id}")
        pubsub = self.pubsub_client.pubsub()
        pubsub.subscribe(channel)
        return pubsub

    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    def close(self):
        self.redis_client.close()
        if self.pubsub_client is not self.redis_client:
            self.pubsub_client.close()


def connect_redis_backend() -> RedisBackend:
    """Open the command and pub/sub connections from configuration."""
    try:
        redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
        redis_client.ping()
        logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
        raise

    try:
        pubsub_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
        pubsub_client.ping()
        logger.info("Redis pub/sub client connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect Redis pub/sub client: {e}", exc_info=True)
        redis_client.close()
        raise

    return RedisBackend(redis_client, pubsub_client)
