import json
import uuid
from typing import Dict, Iterator, List, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """A live WebSocket plus the username and room it is bound to."""

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.connection_id = connection_id or str(uuid.uuid4())
        self.username: Optional[str] = None
        self.current_room: Optional[int] = None
        self.closed = False

    @property
    def is_open(self) -> bool:
        return not self.closed and self.websocket.application_state == WebSocketState.CONNECTED

    async def send(self, payload: dict):
        await self.websocket.send_text(json.dumps(payload))

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            # already closed by the peer
            logger.debug(f"Error closing connection {self.connection_id}: {e}")


class ConnectionDirectory:
    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        return connection.connection_id in self._connections

    def add(self, connection: Connection):
        self._connections[connection.connection_id] = connection
        logger.debug(f"Added connection {connection.connection_id} (total: {len(self._connections)})")

    def remove(self, connection: Connection):
        if self._connections.pop(connection.connection_id, None) is not None:
            logger.debug(f"Removed connection {connection.connection_id} (total: {len(self._connections)})")

    def all(self) -> List[Connection]:
        return list(self._connections.values())

    def in_room(self, room_id: int) -> Iterator[Connection]:
        # iterate a snapshot; sends may remove entries
        for connection in self.all():
            if connection.current_room == room_id:
                yield connection
