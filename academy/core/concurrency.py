# academy/core/concurrency.py
import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Hashable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from academy.config import settings
from academy.core.errors import Conflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedLock:
    """
    One asyncio.Lock per key, so work on different students or groups runs
    concurrently while work on the same key is serialized.
    """

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # Nobody else is queued on this key
                del self._waiters[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


rating_locks = KeyedLock("rating")
group_locks = KeyedLock("group")
student_locks = KeyedLock("student")


async def retry_on_conflict(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    what: str,
    retry_on: tuple[type[Exception], ...] = (StaleDataError,),
) -> T:
    """
    Run a read-modify-write ``operation`` and retry it from scratch when a
    version stamp check fails. After ``settings.CONFLICT_RETRIES`` attempts the
    failure is surfaced as ``Conflict``.
    """
    attempts = settings.CONFLICT_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            await db.rollback()
            logger.warning("Conflict on %s (attempt %d/%d): %s", what, attempt, attempts, e)
    raise Conflict(f"Concurrent update on {what}, gave up after {attempts} attempts")
