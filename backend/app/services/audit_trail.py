"""
Audit Trail.

Append side: ``AuditTrail`` publishes activity and security events onto the
application's EventBus. Publishing is fire-and-forget; any failure is logged
and swallowed so the primary operation always completes.

Events are published as soon as the change is flushed, not after the request
transaction commits. Rejections (failed logins, denied reveals) must be
recorded even though their request rolls back, so the trail is independent
of the request transaction: a commit that fails after the flush leaves an
entry for a change that was not applied.

Query side: newest-first reads over ``activity_logs`` and ``security_logs``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import correlation_id_ctx
from backend.app.events.bus import EventBus
from backend.app.events.schemas import ActivityLogEvent, BaseEvent, SecurityLogEvent
from backend.app.models.audit_orm import ActivityLogORM, SecurityLogORM

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "ClientInfo":
        return cls(
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )


class AuditTrail:
    def __init__(self, bus: Optional[EventBus], client: Optional[ClientInfo] = None):
        self._bus = bus
        self._client = client or ClientInfo()

    def activity(
        self,
        *,
        user_id: str,
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        company_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            event = ActivityLogEvent(
                user_id=user_id,
                action=action,
                entity=entity,
                entity_id=entity_id,
                organization_id=organization_id,
                company_id=company_id,
                details=details,
                ip_address=self._client.ip_address,
                user_agent=self._client.user_agent,
                trace_id=correlation_id_ctx.get(),
            )
        except Exception as e:
            logger.error(f"Could not build activity log event ({action} {entity}): {e}")
            return
        self._publish(event)

    def security(
        self,
        *,
        event_type: str,
        status: str,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            event = SecurityLogEvent(
                security_event=event_type,
                status=status,
                user_id=user_id,
                organization_id=organization_id,
                details=details or {},
                ip_address=self._client.ip_address,
                user_agent=self._client.user_agent,
                trace_id=correlation_id_ctx.get(),
            )
        except Exception as e:
            logger.error(f"Could not build security log event ({event_type}): {e}")
            return
        self._publish(event)

    def _publish(self, event: BaseEvent) -> None:
        if self._bus is None:
            logger.warning(f"Audit bus not initialized, dropped {event.event_type}")
            return
        try:
            self._bus.publish(event)
        except Exception as e:
            logger.error(f"Audit publish failed for {event.event_type}: {e}")


def _clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return DEFAULT_QUERY_LIMIT
    return min(limit, MAX_QUERY_LIMIT)


async def query_activity_logs(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    company_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[ActivityLogORM]:
    stmt = select(ActivityLogORM)
    if user_id:
        stmt = stmt.where(ActivityLogORM.user_id == user_id)
    if entity:
        stmt = stmt.where(ActivityLogORM.entity == entity)
    if entity_id:
        stmt = stmt.where(ActivityLogORM.entity_id == entity_id)
    if organization_id:
        stmt = stmt.where(ActivityLogORM.organization_id == organization_id)
    if company_id:
        stmt = stmt.where(ActivityLogORM.company_id == company_id)
    if date_from:
        stmt = stmt.where(ActivityLogORM.timestamp >= date_from)
    if date_to:
        stmt = stmt.where(ActivityLogORM.timestamp <= date_to)
    stmt = stmt.order_by(ActivityLogORM.timestamp.desc()).limit(_clamp_limit(limit))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def query_security_logs(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    status: Optional[str] = None,
    organization_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[SecurityLogORM]:
    stmt = select(SecurityLogORM)
    if user_id:
        stmt = stmt.where(SecurityLogORM.user_id == user_id)
    if event_type:
        stmt = stmt.where(SecurityLogORM.event_type == event_type)
    if status:
        stmt = stmt.where(SecurityLogORM.status == status)
    if organization_id:
        stmt = stmt.where(SecurityLogORM.organization_id == organization_id)
    if date_from:
        stmt = stmt.where(SecurityLogORM.timestamp >= date_from)
    if date_to:
        stmt = stmt.where(SecurityLogORM.timestamp <= date_to)
    stmt = stmt.order_by(SecurityLogORM.timestamp.desc()).limit(_clamp_limit(limit))
    result = await db.execute(stmt)
    return list(result.scalars().all())
