"""
Event bus and schemas for the audit trail.

Events are produced by request handlers and persisted asynchronously so a
logging backend outage can never fail a user-facing operation.
"""

from backend.app.events.bus import EventBus
from backend.app.events.schemas import (
    BaseEvent,
    ActivityLogEvent,
    SecurityLogEvent,
)

__all__ = [
    "EventBus",
    "BaseEvent",
    "ActivityLogEvent",
    "SecurityLogEvent",
]
