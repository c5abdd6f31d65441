"""Shared request-scoped dependencies for the routers."""
from fastapi import Request

from backend.app.services.audit_trail import AuditTrail, ClientInfo


def get_audit_trail(request: Request) -> AuditTrail:
    """Audit facade bound to this app's event bus and the caller's address."""
    bus = getattr(request.app.state, "event_bus", None)
    return AuditTrail(bus, ClientInfo.from_request(request))
