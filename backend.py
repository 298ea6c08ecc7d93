import functools
import json
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

import redis

from constants import CHAT_BACKEND, REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT
from errors import StoreError, ValidationError
from logging_config import get_logger
from redis_keys import (
    REDIS_MESSAGE_SEQ_KEY,
    REDIS_MESSAGES_KEY,
    REDIS_ROOM_NAMES_KEY,
    REDIS_ROOM_SEQ_KEY,
    REDIS_ROOMS_KEY,
    REDIS_USER_KEY,
)

logger = get_logger(__name__)

# Increment and threshold check run as one script so concurrent offenders
# cannot lose updates.
INCREMENT_BLOCK_COUNT_SCRIPT = """
local count = redis.call('HINCRBY', KEYS[1], 'block_count', 1)
if count >= tonumber(ARGV[1]) then
    redis.call('HSET', KEYS[1], 'is_blocked', '1')
end
redis.call('HSETNX', KEYS[1], 'username', ARGV[2])
redis.call('HSETNX', KEYS[1], 'created_at', ARGV[3])
return count
"""

# Name reservation and room record are written together or not at all.
CREATE_ROOM_SCRIPT = """
if redis.call('HEXISTS', KEYS[1], ARGV[1]) == 1 then
    return 0
end
local room_id = redis.call('INCR', KEYS[3])
redis.call('HSET', KEYS[1], ARGV[1], room_id)
redis.call('HSET', KEYS[2], room_id, cjson.encode({
    id = room_id, name = ARGV[1], created_by = ARGV[2], created_at = ARGV[3]
}))
return room_id
"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def duplicate_room_error() -> ValidationError:
    return ValidationError(
        "Room already exists",
        "A room with this name already exists. Please choose a different name.",
    )


def _redis_errors(func):
    """Turn redis failures into StoreError, logging the real cause."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except redis.RedisError as e:
            logger.error(f"Redis error in {func.__name__}: {e}", exc_info=True)
            raise StoreError() from e

    return wrapper


class RedisBackend:
    def __init__(self, redis_client: Optional[redis.Redis] = None):
        if redis_client is None:
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            redis_client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                db=REDIS_DB,
                decode_responses=True,
            )
        self.redis_client = redis_client
        self._increment_block_count = self.redis_client.register_script(INCREMENT_BLOCK_COUNT_SCRIPT)
        self._create_room = self.redis_client.register_script(CREATE_ROOM_SCRIPT)

    @_redis_errors
    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    @staticmethod
    def _user_from_hash(data: dict) -> Optional[dict]:
        if not data:
            return None
        return {
            "username": data.get("username"),
            "created_at": data.get("created_at"),
            "last_seen_at": data.get("last_seen_at"),
            "block_count": int(data.get("block_count", 0)),
            "is_blocked": data.get("is_blocked") == "1",
        }

    @staticmethod
    def _room_from_json(raw: str) -> dict:
        room = json.loads(raw)
        room["id"] = int(room["id"])
        room["created_by"] = room.get("created_by") or None
        return room

    @_redis_errors
    def get_user(self, username: str) -> Optional[dict]:
        key = REDIS_USER_KEY.format(username=username)
        return self._user_from_hash(self.redis_client.hgetall(key))

    @_redis_errors
    def upsert_user(self, username: str) -> dict:
        logger.debug(f"Upserting user {username}")
        key = REDIS_USER_KEY.format(username=username)
        now = utc_now_iso()
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.hsetnx(key, "username", username)
        pipe.hsetnx(key, "created_at", now)
        pipe.hsetnx(key, "block_count", 0)
        pipe.hsetnx(key, "is_blocked", "0")
        pipe.hset(key, "last_seen_at", now)
        pipe.hgetall(key)
        return self._user_from_hash(pipe.execute()[-1])

    @_redis_errors
    def increment_block_count(self, username: str, threshold: int) -> dict:
        key = REDIS_USER_KEY.format(username=username)
        count = self._increment_block_count(keys=[key], args=[threshold, username, utc_now_iso()])
        logger.debug(f"Block count for {username} is now {count}")
        return self._user_from_hash(self.redis_client.hgetall(key))

    @_redis_errors
    def is_blocked(self, username: str) -> bool:
        key = REDIS_USER_KEY.format(username=username)
        return self.redis_client.hget(key, "is_blocked") == "1"

    @_redis_errors
    def get_room(self, room_id: int) -> Optional[dict]:
        raw = self.redis_client.hget(REDIS_ROOMS_KEY, str(room_id))
        if raw is None:
            return None
        return self._room_from_json(raw)

    @_redis_errors
    def list_rooms(self) -> List[dict]:
        rooms = [self._room_from_json(raw) for raw in self.redis_client.hvals(REDIS_ROOMS_KEY)]
        return sorted(rooms, key=lambda room: room["id"])

    @_redis_errors
    def create_room(self, name: str, created_by: Optional[str]) -> dict:
        logger.info(f"Creating room {name} for {created_by}")
        created_at = utc_now_iso()
        room_id = self._create_room(
            keys=[REDIS_ROOM_NAMES_KEY, REDIS_ROOMS_KEY, REDIS_ROOM_SEQ_KEY],
            args=[name, created_by or "", created_at],
        )
        if not room_id:
            raise duplicate_room_error()
        return {"id": int(room_id), "name": name, "created_by": created_by, "created_at": created_at}

    @_redis_errors
    def insert_message(self, room_id: int, username: str, text: str) -> dict:
        message = {
            "id": int(self.redis_client.incr(REDIS_MESSAGE_SEQ_KEY)),
            "room_id": room_id,
            "username": username,
            "message": text,
            "timestamp": utc_now_iso(),
        }
        self.redis_client.rpush(REDIS_MESSAGES_KEY.format(room_id=room_id), json.dumps(message))
        logger.debug(f"Stored message {message['id']} in room {room_id}")
        return message

    @_redis_errors
    def list_recent_messages(self, room_id: int, limit: int) -> List[dict]:
        if limit <= 0:
            return []
        key = REDIS_MESSAGES_KEY.format(room_id=room_id)
        return [json.loads(raw) for raw in self.redis_client.lrange(key, -limit, -1)]


class MemoryBackend:
    """In-process store with the same contract as RedisBackend.

    Methods are called from executor threads, so all state sits behind one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, dict] = {}
        self._rooms: Dict[int, dict] = {}
        self._room_names: Dict[str, int] = {}
        self._messages: Dict[int, List[dict]] = {}
        self._next_room_id = 1
        self._next_message_id = 1

    def ping(self) -> bool:
        return True

    def _ensure_user_locked(self, username: str) -> dict:
        user = self._users.get(username)
        if user is None:
            now = utc_now_iso()
            user = {
                "username": username,
                "created_at": now,
                "last_seen_at": now,
                "block_count": 0,
                "is_blocked": False,
            }
            self._users[username] = user
        return user

    def get_user(self, username: str) -> Optional[dict]:
        with self._lock:
            user = self._users.get(username)
            return dict(user) if user else None

    def upsert_user(self, username: str) -> dict:
        with self._lock:
            user = self._ensure_user_locked(username)
            user["last_seen_at"] = utc_now_iso()
            return dict(user)

    def increment_block_count(self, username: str, threshold: int) -> dict:
        with self._lock:
            user = self._ensure_user_locked(username)
            user["block_count"] += 1
            if user["block_count"] >= threshold:
                user["is_blocked"] = True
            return dict(user)

    def is_blocked(self, username: str) -> bool:
        with self._lock:
            user = self._users.get(username)
            return bool(user and user["is_blocked"])

    def get_room(self, room_id: int) -> Optional[dict]:
        with self._lock:
            room = self._rooms.get(room_id)
            return dict(room) if room else None

    def list_rooms(self) -> List[dict]:
        with self._lock:
            return [dict(self._rooms[room_id]) for room_id in sorted(self._rooms)]

    def create_room(self, name: str, created_by: Optional[str]) -> dict:
        with self._lock:
            if name in self._room_names:
                raise duplicate_room_error()
            room = {
                "id": self._next_room_id,
                "name": name,
                "created_by": created_by,
                "created_at": utc_now_iso(),
            }
            self._next_room_id += 1
            self._rooms[room["id"]] = room
            self._room_names[name] = room["id"]
            return dict(room)

    def insert_message(self, room_id: int, username: str, text: str) -> dict:
        with self._lock:
            message = {
                "id": self._next_message_id,
                "room_id": room_id,
                "username": username,
                "message": text,
                "timestamp": utc_now_iso(),
            }
            self._next_message_id += 1
            self._messages.setdefault(room_id, []).append(message)
            return dict(message)

    def list_recent_messages(self, room_id: int, limit: int) -> List[dict]:
        if limit <= 0:
            return []
        with self._lock:
            return [dict(message) for message in self._messages.get(room_id, [])[-limit:]]


def build_backend(kind: str = CHAT_BACKEND):
    if kind == "memory":
        logger.info("Using in-memory chat backend")
        return MemoryBackend()
    if kind == "redis":
        return RedisBackend()
    raise ValueError(f"Unknown chat backend: {kind}")
