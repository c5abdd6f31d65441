"""
Audit Trail ORM Models.

Append-only: rows are written by the audit consumer and never updated or
deleted by the application.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, JSON
from backend.app.core.database import Base


class ActivityLogORM(Base):
    """Who did what to which entity, when and from where."""
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    organization_id = Column(String(36), nullable=True, index=True)
    company_id = Column(String(36), nullable=True, index=True)
    action = Column(String(50), nullable=False)  # login | logout | view | create | update | delete | view_password ...
    entity = Column(String(50), nullable=False)  # certificate | company | user | organization | permission
    entity_id = Column(String(36), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    trace_id = Column(String(128), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity}:{self.entity_id} by {self.user_id}>"


class SecurityLogORM(Base):
    """Authentication-adjacent events (login, lockout, 2FA, session end)."""
    __tablename__ = "security_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=True, index=True)
    organization_id = Column(String(36), nullable=True, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # success | failure
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    trace_id = Column(String(128), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
