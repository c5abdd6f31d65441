"""
Background Audit Consumer.

Async task that runs alongside FastAPI, consuming audit events from the
bus and dispatching them to the persistence handlers.

Decouples event production (request handlers) from consumption (database
writes), so an audit backend outage never fails a user-facing request.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.events.bus import EventBus
from backend.app.workers.handlers import handle_event

logger = logging.getLogger(__name__)


async def event_consumer_loop(bus: EventBus, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Main consumer loop.

    1. Waits for event from bus
    2. Dispatches to handler
    3. Marks event done (always, so drain() never hangs)

    Runs as a background asyncio.Task, does not block the API.
    """
    logger.info("Audit consumer started")

    try:
        while True:
            event = await bus.get()
            try:
                logger.debug(
                    f"Event dequeued: {event.event_type} "
                    f"(org={event.organization_id}, id={event.event_id[:8]}..., "
                    f"queue_size={bus.qsize()})"
                )
                await handle_event(event, session_factory)
            except Exception as e:
                logger.error(f"Consumer loop error: {e}", exc_info=True)
            finally:
                bus.task_done()

    except asyncio.CancelledError:
        logger.info("Audit consumer cancelled")
        raise


async def start_event_consumer(
    bus: EventBus, session_factory: async_sessionmaker[AsyncSession]
) -> asyncio.Task:
    """
    Start the consumer as a background task.

    Returns:
        The asyncio.Task running the consumer loop
    """
    task = asyncio.create_task(event_consumer_loop(bus, session_factory))
    # Let the loop reach its first await before requests start publishing
    await asyncio.sleep(0)
    return task


async def stop_event_consumer(bus: EventBus, task: asyncio.Task, timeout: float = 5.0) -> None:
    """Flush pending events, then cancel the consumer."""
    try:
        await asyncio.wait_for(bus.drain(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Audit queue not drained on shutdown ({bus.qsize()} events dropped)")

    if not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
