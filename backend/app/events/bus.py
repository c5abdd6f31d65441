"""
In-Memory Event Bus.

asyncio.Queue-based bus decoupling audit producers (request handlers)
from the consumer that persists events.

Task-safe, not thread-safe. One instance is created per application in the
lifespan and stored on ``app.state.event_bus``.
"""
import asyncio
import logging

from backend.app.events.schemas import BaseEvent

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self, maxsize: int = 10000):
        """
        Args:
            maxsize: Maximum queue size (0 = unlimited)
        """
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        logger.info(f"Event bus initialized with maxsize={maxsize}")

    def publish(self, event: BaseEvent) -> None:
        """
        Publish an event to the bus.

        Raises:
            asyncio.QueueFull: If queue is at capacity
        """
        try:
            self._queue.put_nowait(event)
            logger.debug(
                f"Event published: {event.event_type} (org={event.organization_id}, "
                f"id={event.event_id[:8]}..., queue_size={self._queue.qsize()})"
            )
        except asyncio.QueueFull:
            logger.warning(
                f"Event bus full! Dropped event: {event.event_type} "
                f"(org={event.organization_id}, id={event.event_id[:8]}...)"
            )
            raise

    async def get(self) -> BaseEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    def qsize(self) -> int:
        return self._queue.qsize()

    async def drain(self) -> None:
        """Wait until every published event has been processed."""
        await self._queue.join()
