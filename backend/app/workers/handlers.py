"""
Handler Registry for the audit bus.

Maps event types to coroutine handlers. Each handler persists one event in
its own database session, independent of the request that produced it.
"""
import logging
from typing import Awaitable, Callable, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.events.schemas import ActivityLogEvent, BaseEvent, SecurityLogEvent
from backend.app.models.audit_orm import ActivityLogORM, SecurityLogORM

logger = logging.getLogger(__name__)

Handler = Callable[[BaseEvent, AsyncSession], Awaitable[None]]

# Handler registry: event_type -> handler function
_handlers: Dict[str, Handler] = {}


def register_handler(event_type: str, handler: Handler) -> None:
    _handlers[event_type] = handler
    logger.info(f"Handler registered: {event_type} -> {handler.__name__}")


def get_handler(event_type: str) -> Handler | None:
    return _handlers.get(event_type)


async def handle_event(event: BaseEvent, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Dispatch event to its registered handler inside a fresh session."""
    handler = get_handler(event.event_type)
    if not handler:
        logger.debug(f"No handler for event type: {event.event_type}")
        return

    try:
        async with session_factory() as session:
            await handler(event, session)
            await session.commit()
        logger.debug(f"Event handled: {event.event_type} (id={event.event_id[:8]}...)")
    except Exception as e:
        logger.error(f"Handler failed for {event.event_type}: {e}", exc_info=True)


async def persist_activity_log(event: ActivityLogEvent, session: AsyncSession) -> None:
    session.add(ActivityLogORM(
        id=event.event_id,
        user_id=event.user_id,
        organization_id=event.organization_id,
        company_id=event.company_id,
        action=event.action,
        entity=event.entity,
        entity_id=event.entity_id,
        details=event.details,
        ip_address=event.ip_address,
        user_agent=event.user_agent,
        trace_id=event.trace_id,
        timestamp=event.timestamp,
    ))


async def persist_security_log(event: SecurityLogEvent, session: AsyncSession) -> None:
    session.add(SecurityLogORM(
        id=event.event_id,
        user_id=event.user_id,
        organization_id=event.organization_id,
        event_type=event.security_event,
        status=event.status,
        details=event.details,
        ip_address=event.ip_address,
        user_agent=event.user_agent,
        trace_id=event.trace_id,
        timestamp=event.timestamp,
    ))


register_handler("activity_log", persist_activity_log)
register_handler("security_log", persist_security_log)
