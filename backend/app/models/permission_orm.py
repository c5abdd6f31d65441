import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from backend.app.core.database import Base


class UserPermissionORM(Base):
    """
    Per-(user, company) grant. A missing row means no access.
    """
    __tablename__ = "user_permissions"
    __table_args__ = (UniqueConstraint("user_id", "company_id", name="uq_user_permissions_user_company"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    view = Column("view_permission", Boolean, nullable=False, default=True)
    edit = Column("edit_permission", Boolean, nullable=False, default=False)
    delete = Column("delete_permission", Boolean, nullable=False, default=False)
    view_password = Column("view_password_permission", Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))
