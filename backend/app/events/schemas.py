"""
Event Schema Definitions for the audit bus.

Every sensitive action is published as an event and persisted by the
background consumer, off the request path.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class BaseEvent(BaseModel):
    """
    Base event schema.

    - Unique event tracking (event_id, trace_id)
    - Tenant scoping (organization_id, optional for tenant-less users)
    - Temporal tracking (timestamp, captured at publish time)
    - Event categorization (event_type)
    """

    event_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique event identifier (UUID)"
    )

    organization_id: Optional[str] = Field(
        default=None,
        description="Tenant the event belongs to"
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when the action happened"
    )

    event_type: str = Field(
        description="Event type discriminator (e.g., 'activity_log', 'security_log')"
    )

    trace_id: Optional[str] = Field(
        default=None,
        description="Correlation ID of the request that produced the event"
    )

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        use_enum_values = True


class ActivityLogEvent(BaseEvent):
    """
    A user acted on an entity (view, create, update, delete, view_password, ...).
    """

    event_type: str = Field(default="activity_log", frozen=True)
    user_id: str
    company_id: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class SecurityLogEvent(BaseEvent):
    """
    Authentication-adjacent event (login success/failure, lockout, 2FA, logout).
    """

    event_type: str = Field(default="security_log", frozen=True)
    user_id: Optional[str] = None
    security_event: str
    status: str  # success | failure
    details: Dict[str, Any] = Field(default_factory=dict)
