import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# Signs room credentials. Must be shared by every instance behind the same Redis.
AUTH_SECRET = os.getenv("AUTH_SECRET", None)
AUTH_COOKIE_NAME = "x-auth-token"
AUTH_HEADER_NAME = "X-Auth-Token"

DEFAULT_ROOM_TTL_MINUTES = 10
MIN_ROOM_TTL_MINUTES = 1
MAX_ROOM_TTL_MINUTES = 120

MAX_SENDER_LENGTH = 100
MAX_TEXT_LENGTH = 1000
