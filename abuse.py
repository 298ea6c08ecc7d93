import asyncio
import weakref
from dataclasses import dataclass

from constants import BLOCK_THRESHOLD
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OffenseResult:
    username: str
    block_count: int
    is_blocked: bool
    newly_blocked: bool


class AbuseTracker:
    """Per-user offense counter that blocks a user at the threshold.

    States run Clean -> Warned(n) -> Blocked and never go back. ``run_store``
    executes a blocking store call off the event loop and awaits the result.
    """

    def __init__(self, backend, run_store, threshold: int = BLOCK_THRESHOLD):
        if threshold < 1:
            raise ValueError("Block threshold must be at least 1")
        self.backend = backend
        self.run_store = run_store
        self.threshold = threshold
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, username: str) -> asyncio.Lock:
        lock = self._locks.get(username)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[username] = lock
        return lock

    async def is_blocked(self, username: str) -> bool:
        return await self.run_store(self.backend.is_blocked, username)

    async def record_offense(self, username: str) -> OffenseResult:
        lock = self._lock_for(username)
        async with lock:
            was_blocked = await self.run_store(self.backend.is_blocked, username)
            user = await self.run_store(self.backend.increment_block_count, username, self.threshold)

        result = OffenseResult(
            username=username,
            block_count=user["block_count"],
            is_blocked=user["is_blocked"],
            newly_blocked=user["is_blocked"] and not was_blocked,
        )
        if result.newly_blocked:
            logger.warning(f"User {username} blocked after {result.block_count} offensive messages")
        else:
            logger.info(f"Offensive message from {username} ({result.block_count}/{self.threshold})")
        return result
