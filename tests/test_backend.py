import unittest
from unittest import mock

import redis

from backend import MemoryBackend, RedisBackend, build_backend
from errors import StoreError, ValidationError


class MemoryBackendTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryBackend()

    def test_upsert_user_is_idempotent(self) -> None:
        first = self.backend.upsert_user("alice")
        second = self.backend.upsert_user("alice")
        self.assertEqual(first["created_at"], second["created_at"])
        self.assertGreaterEqual(second["last_seen_at"], first["last_seen_at"])
        self.assertEqual(second["block_count"], 0)
        self.assertFalse(second["is_blocked"])

    def test_get_user_returns_none_for_unknown_user(self) -> None:
        self.assertIsNone(self.backend.get_user("nobody"))
        self.assertFalse(self.backend.is_blocked("nobody"))

    def test_increment_blocks_at_threshold(self) -> None:
        self.backend.upsert_user("bob")
        counts = [self.backend.increment_block_count("bob", 3) for _ in range(4)]
        self.assertEqual([user["block_count"] for user in counts], [1, 2, 3, 4])
        self.assertEqual([user["is_blocked"] for user in counts], [False, False, True, True])
        self.assertTrue(self.backend.is_blocked("bob"))

    def test_duplicate_room_name_is_rejected_without_partial_state(self) -> None:
        room = self.backend.create_room("general", "alice")
        with self.assertRaises(ValidationError):
            self.backend.create_room("general", "bob")
        rooms = self.backend.list_rooms()
        self.assertEqual(len(rooms), 1)
        self.assertEqual(rooms[0]["id"], room["id"])
        self.assertEqual(rooms[0]["created_by"], "alice")

    def test_room_ids_are_increasing(self) -> None:
        first = self.backend.create_room("one", "alice")
        second = self.backend.create_room("two", "alice")
        self.assertLess(first["id"], second["id"])
        self.assertEqual([room["name"] for room in self.backend.list_rooms()], ["one", "two"])
        self.assertEqual(self.backend.get_room(second["id"])["name"], "two")
        self.assertIsNone(self.backend.get_room(999))

    def test_recent_messages_are_latest_ascending(self) -> None:
        room = self.backend.create_room("general", "alice")
        for i in range(60):
            self.backend.insert_message(room["id"], "alice", f"message {i}")
        recent = self.backend.list_recent_messages(room["id"], 50)
        self.assertEqual(len(recent), 50)
        self.assertEqual(recent[0]["message"], "message 10")
        self.assertEqual(recent[-1]["message"], "message 59")
        timestamps = [message["timestamp"] for message in recent]
        self.assertEqual(timestamps, sorted(timestamps))

    def test_messages_are_scoped_to_room(self) -> None:
        general = self.backend.create_room("general", "alice")
        random = self.backend.create_room("random", "alice")
        self.backend.insert_message(general["id"], "alice", "hi")
        self.assertEqual(self.backend.list_recent_messages(random["id"], 50), [])


class RedisBackendTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = mock.MagicMock()
        self.backend = RedisBackend(redis_client=self.client)

    def test_redis_failure_becomes_store_error(self) -> None:
        self.client.hvals.side_effect = redis.ConnectionError("connection refused")
        with self.assertRaises(StoreError) as ctx:
            self.backend.list_rooms()
        self.assertNotIn("connection refused", str(ctx.exception.to_payload()))

    def test_user_hash_is_decoded(self) -> None:
        self.client.hgetall.return_value = {
            "username": "bob",
            "created_at": "2024-01-01T00:00:00+00:00",
            "last_seen_at": "2024-01-01T00:00:00+00:00",
            "block_count": "3",
            "is_blocked": "1",
        }
        user = self.backend.get_user("bob")
        self.assertEqual(user["block_count"], 3)
        self.assertTrue(user["is_blocked"])
        self.client.hgetall.assert_called_with("chat:user:bob")

    def test_duplicate_room_from_script_raises_validation_error(self) -> None:
        self.backend._create_room = mock.MagicMock(return_value=0)
        with self.assertRaises(ValidationError):
            self.backend.create_room("general", "alice")

    def test_recent_messages_read_tail_of_list(self) -> None:
        self.client.lrange.return_value = ['{"id": 1, "message": "hi"}']
        self.assertEqual(self.backend.list_recent_messages(7, 50), [{"id": 1, "message": "hi"}])
        self.client.lrange.assert_called_with("chat:room:7:messages", -50, -1)


class BuildBackendTests(unittest.TestCase):
    def test_memory_backend(self) -> None:
        self.assertIsInstance(build_backend("memory"), MemoryBackend)

    def test_unknown_backend(self) -> None:
        with self.assertRaises(ValueError):
            build_backend("sqlite")


if __name__ == "__main__":
    unittest.main()
