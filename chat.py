import asyncio
import functools
from typing import AbstractSet, List, Optional

from fastapi import WebSocketDisconnect

from abuse import AbuseTracker
from censor import censor, was_censored
from connections import Connection, ConnectionDirectory
from constants import BLOCK_THRESHOLD, HISTORY_LIMIT
from errors import AuthorizationError, BlockedError, ProtocolError, StoreError, ValidationError
from logging_config import get_logger
from schemas.frames import JoinFrame, MessageFrame, RegisterFrame

logger = get_logger(__name__)

BLOCKED_NOTICE = "You have been blocked from sending messages due to multiple offensive messages"


class ChatCoordinator:
    """Moderates, persists and fans out chat traffic.

    Owns the connection directory; the backend is any store with the
    RedisBackend contract. Store calls are blocking and always go through
    ``run_store`` so they run in the default executor.
    """

    def __init__(
        self,
        backend,
        prohibited: AbstractSet[str] = frozenset(),
        directory: Optional[ConnectionDirectory] = None,
        threshold: int = BLOCK_THRESHOLD,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.backend = backend
        self.prohibited = prohibited
        self.directory = directory if directory is not None else ConnectionDirectory()
        self.history_limit = history_limit
        self.abuse = AbuseTracker(backend, self.run_store, threshold=threshold)

    async def run_store(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # Transport

    async def send_to(self, connection: Connection, payload: dict) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.send(payload)
            return True
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.warning(f"Error sending to connection {connection.connection_id}: {e}")
            self.directory.remove(connection)
            return False

    async def broadcast(self, room_id: int, payload: dict) -> int:
        targets = list(self.directory.in_room(room_id))
        results = await asyncio.gather(*(self.send_to(connection, payload) for connection in targets))
        delivered = sum(1 for sent in results if sent)
        logger.debug(f"Broadcasted {payload.get('type')} to {delivered}/{len(targets)} connections in room {room_id}")
        return delivered

    async def broadcast_all(self, payload: dict) -> int:
        targets = self.directory.all()
        results = await asyncio.gather(*(self.send_to(connection, payload) for connection in targets))
        return sum(1 for sent in results if sent)

    # Operations

    async def _require_room(self, room_id: int) -> dict:
        room = await self.run_store(self.backend.get_room, room_id)
        if room is None:
            raise ValidationError("Unknown room", "The selected room does not exist.")
        return room

    async def register(self, connection: Connection, username: str) -> dict:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Registration failed", "Please enter a username")
        user = await self.run_store(self.backend.upsert_user, username)
        connection.username = username
        logger.info(f"Connection {connection.connection_id} registered as {username}")
        return user

    async def join_room(self, connection: Connection, room_id: int) -> List[dict]:
        await self._require_room(room_id)
        connection.current_room = room_id
        rows = await self.run_store(self.backend.list_recent_messages, room_id, self.history_limit)
        # stored text is already censored; the list may have grown since
        for row in rows:
            row["message"] = censor(row["message"], self.prohibited)
        logger.info(f"Connection {connection.connection_id} joined room {room_id} ({len(rows)} messages of history)")
        return rows

    async def submit_message(
        self,
        connection: Connection,
        room_id: int,
        username: Optional[str],
        text: Optional[str],
    ) -> dict:
        username = (username or connection.username or "").strip()
        if not username:
            raise ValidationError("Invalid input", "Please register a username before sending messages")
        await self._require_room(room_id)
        if not text or not text.strip():
            raise ValidationError("Invalid input", "Message cannot be empty")

        if await self.abuse.is_blocked(username):
            logger.warning(f"Rejected message from blocked user {username}")
            raise BlockedError()

        censored = censor(text, self.prohibited)
        offended = was_censored(text, censored)

        message = await self.run_store(self.backend.insert_message, room_id, username, censored)

        offense = None
        try:
            if offended:
                offense = await self.abuse.record_offense(username)
        finally:
            # the message is stored, so the room sees it even if escalation failed
            await self.broadcast(room_id, {
                "type": "message",
                "id": message["id"],
                "username": username,
                "message": message["message"],
                "timestamp": message["timestamp"],
                "room_id": room_id,
            })

        if offense is not None and offense.is_blocked:
            await self.send_to(connection, {"type": "error", "error": BLOCKED_NOTICE})
            await self.disconnect(connection)
        return message

    async def list_rooms(self) -> List[dict]:
        return await self.run_store(self.backend.list_rooms)

    async def create_room(self, name: Optional[str], username: Optional[str]) -> dict:
        if username and await self.abuse.is_blocked(username):
            logger.warning(f"Blocked user {username} tried to create room {name!r}")
            raise AuthorizationError("Access denied", "Blocked users cannot create rooms")

        name = (name or "").strip()
        if not name:
            raise ValidationError("Invalid input", "Please enter a room name")

        room = await self.run_store(self.backend.create_room, name, username)
        logger.info(f"Room {room['id']} ({name}) created by {username}")

        try:
            rooms = await self.list_rooms()
        except StoreError:
            # the room exists; clients pick it up on their next GET /rooms
            logger.error(f"Room {room['id']} created but the room list could not be refreshed", exc_info=True)
        else:
            await self.broadcast_all({"type": "room-list", "rooms": rooms})
        return room

    # Connection lifecycle

    def connect(self, connection: Connection):
        self.directory.add(connection)

    async def disconnect(self, connection: Connection):
        self.directory.remove(connection)
        await connection.close()

    async def handle_frame(self, connection: Connection, frame):
        if isinstance(frame, RegisterFrame):
            await self.register(connection, frame.username)
            await self.send_to(connection, {"type": "register", "success": True})
        elif isinstance(frame, JoinFrame):
            messages = await self.join_room(connection, frame.room_id)
            await self.send_to(connection, {"type": "join", "roomId": frame.room_id, "messages": messages})
        elif isinstance(frame, MessageFrame):
            await self.submit_message(connection, frame.room_id, frame.username, frame.message)
        else:
            raise ProtocolError()
