REDIS_USER_KEY = "chat:user:{username}" # hash - username, created_at, last_seen_at, block_count, is_blocked
REDIS_ROOMS_KEY = "chat:rooms" # hash - room id -> room json
REDIS_ROOM_NAMES_KEY = "chat:rooms:names" # hash - room name -> room id
REDIS_ROOM_SEQ_KEY = "chat:rooms:seq" # counter for room ids
REDIS_MESSAGES_KEY = "chat:room:{room_id}:messages" # list of message json, oldest first
REDIS_MESSAGE_SEQ_KEY = "chat:messages:seq" # counter for message ids

# **Example `chat:user:{username}` hash fields**
# - `username` = `{username}`
# - `created_at` = ISO timestamp
# - `last_seen_at` = ISO timestamp
# - `block_count` = integer, only ever incremented
# - `is_blocked` = "1" once block_count reaches the block threshold
