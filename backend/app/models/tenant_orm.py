import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey
from backend.app.core.database import Base


DEFAULT_PASSWORD_POLICY = {
    "min_length": 8,
    "require_uppercase": True,
    "require_lowercase": True,
    "require_numbers": True,
    "require_special_chars": True,
    "expires_days": 90,
    "prevent_reuse": 3,
}

DEFAULT_TWO_FACTOR_POLICY = {
    "required": False,
    "required_for_admins": True,
    "grace_period_hours": 24,
}

DEFAULT_SESSION_POLICY = {
    "idle_timeout_minutes": 30,
    "absolute_timeout_hours": 24,
    "remember_me_days": 30,
}

DEFAULT_NOTIFICATION_SETTINGS = {
    "expiry_notifications": {"days": [30, 15, 7, 1]},
    "email_notifications": True,
    "sms_notifications": False,
    "whatsapp_notifications": False,
}


class OrganizationORM(Base):
    """
    Tenant boundary. Owns companies and users.
    """
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    identifier = Column(String(32), unique=True, nullable=False, index=True)  # tax ID (CNPJ)
    domain = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | inactive | suspended
    plan = Column(String(20), nullable=False, default="basic")  # trial | basic | premium | enterprise
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Organization {self.name}>"


class OrganizationSettingsORM(Base):
    """Per-organization policy blobs. Configuration data only."""
    __tablename__ = "organization_settings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True,
    )
    password_policy = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_PASSWORD_POLICY))
    two_factor_policy = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_TWO_FACTOR_POLICY))
    session_policy = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_SESSION_POLICY))
    notification_settings = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_NOTIFICATION_SETTINGS))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))
