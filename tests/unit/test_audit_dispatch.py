"""
Audit dispatch: fire-and-forget publishing and background persistence.
"""
import asyncio

import pytest
from sqlalchemy import select

from backend.app.events.bus import EventBus
from backend.app.events.schemas import ActivityLogEvent
from backend.app.models.audit_orm import ActivityLogORM, SecurityLogORM
from backend.app.services.audit_trail import AuditTrail, ClientInfo


async def test_consumer_persists_activity_and_security_events(event_bus, db_session):
    audit = AuditTrail(event_bus, ClientInfo(ip_address="10.0.0.1", user_agent="pytest"))
    audit.activity(user_id="u1", action="create", entity="certificate", entity_id="c1", details={"name": "NFe"})
    audit.security(event_type="login_attempt", status="failure", details={"reason": "unknown_user"})
    await event_bus.drain()

    activity = (await db_session.execute(select(ActivityLogORM))).scalars().all()
    security = (await db_session.execute(select(SecurityLogORM))).scalars().all()

    assert len(activity) == 1
    assert activity[0].action == "create"
    assert activity[0].entity_id == "c1"
    assert activity[0].ip_address == "10.0.0.1"
    assert len(security) == 1
    assert security[0].user_id is None
    assert security[0].details == {"reason": "unknown_user"}


def test_publish_raises_when_queue_is_full():
    bus = EventBus(maxsize=1)
    bus.publish(ActivityLogEvent(user_id="u", action="a", entity="e"))
    with pytest.raises(asyncio.QueueFull):
        bus.publish(ActivityLogEvent(user_id="u", action="a", entity="e"))


def test_audit_trail_swallows_publish_failures():
    bus = EventBus(maxsize=1)
    audit = AuditTrail(bus)
    audit.activity(user_id="u", action="a", entity="e")
    # Full queue: must not raise
    audit.activity(user_id="u", action="b", entity="e")
    audit.security(event_type="login", status="success")
    assert bus.qsize() == 1


def test_audit_trail_without_bus_is_a_no_op():
    AuditTrail(None).activity(user_id="u", action="a", entity="e")


async def test_handler_failure_does_not_stop_the_consumer(event_bus, db_session):
    audit = AuditTrail(event_bus)
    # Non-serializable details make the insert fail inside the handler
    audit.activity(user_id="u1", action="broken", entity="certificate", details={"bad": object()})
    audit.activity(user_id="u1", action="ok", entity="certificate")
    await event_bus.drain()

    rows = (await db_session.execute(select(ActivityLogORM))).scalars().all()
    assert [r.action for r in rows] == ["ok"]
