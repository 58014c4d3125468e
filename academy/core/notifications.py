# academy/core/notifications.py
"""
In-process pub/sub keyed by user id.

Services publish rank, points, claim and message events here; the ``/ws``
endpoint in ``academy.routers.notifications`` drains a subscriber queue per
connected client. Publishing is fire-and-forget: a slow or absent listener
never fails the operation that produced the event.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

RANK_CHANGED = "rank_changed"
POINTS_CHANGED = "points_changed"
REWARD_CLAIMED = "reward_claimed"
MESSAGE_RECEIVED = "message_received"


class NotificationBroker:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: Dict[int, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: int) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[user_id].add(queue)
        logger.debug("User %s subscribed (%d listeners)", user_id, len(self._subscribers[user_id]))
        return queue

    def unsubscribe(self, user_id: int, queue: asyncio.Queue) -> None:
        listeners = self._subscribers.get(user_id)
        if not listeners:
            return
        listeners.discard(queue)
        if not listeners:
            del self._subscribers[user_id]

    def publish(self, user_id: int, event: str, payload: Dict[str, Any] | None = None) -> int:
        """Queue an event for every listener of ``user_id``; returns how many got it."""
        message = {
            "type": event,
            "data": payload or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        delivered = 0
        for queue in list(self._subscribers.get(user_id, ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s for user %s: listener queue full", event, user_id)
        return delivered

    def listener_count(self, user_id: int) -> int:
        return len(self._subscribers.get(user_id, ()))


broker = NotificationBroker()
