REDIS_META_KEY = "room:meta:{slug}" # room id - hash
REDIS_MESSAGES_KEY = "room:messages:{slug}" # room id - list of JSON messages
REDIS_ROOM_CHANNEL = "room:channel:{slug}" # room id - pub/sub channel name

# **`room:meta:{id}` hash fields**
# - `created_at` = epoch milliseconds
#
# `room:meta:{id}` and `room:messages:{id}` always carry the same TTL.
# The channel is pub/sub only and stores nothing.
