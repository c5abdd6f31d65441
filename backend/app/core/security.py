"""
Security and Authentication for CertGuard API.

Cookie-based server-side sessions. The cookie carries a session id signed
as a short JWT; session state itself lives in the ``user_sessions`` table.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.database import get_db
from backend.app.core.errors import AuthenticationError, PermissionDeniedError
from backend.app.core.logging import organization_id_ctx
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.user_orm import UserORM
from backend.app.services import session_service

settings = get_settings()


class Role(str, Enum):
    """Closed set of account roles."""
    SYSTEM_ADMIN = "system_admin"  # SaaS operator, crosses tenants
    ORG_ADMIN = "org_admin"        # administers one organization
    USER = "user"

    def has_admin_privileges(self) -> bool:
        return self in (Role.SYSTEM_ADMIN, Role.ORG_ADMIN)

    @classmethod
    def of(cls, value: Optional[str]) -> "Role":
        try:
            return cls(value)
        except ValueError:
            return cls.USER


def sign_session_id(session_id: str, expires_at: Optional[datetime] = None) -> str:
    """
    Generate the signed cookie value for a session id.
    """
    if expires_at is None:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.session_max_age_hours)
    payload = {"sid": session_id, "exp": expires_at}
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def read_session_id(token: str) -> Optional[str]:
    """Return the session id from a cookie value, or None if tampered/expired."""
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) else None


class SessionAuthContext:
    """Authenticated identity resolved from the session cookie."""

    def __init__(self, user: UserORM, session: UserSessionORM):
        self.user = user
        self.session = session

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def organization_id(self) -> Optional[str]:
        return self.user.organization_id

    @property
    def role(self) -> Role:
        return Role.of(self.user.role)

    @property
    def is_system_admin(self) -> bool:
        return self.role is Role.SYSTEM_ADMIN


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SessionAuthContext:
    """
    Resolve the session cookie into an authenticated user.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise AuthenticationError()

    session_id = read_session_id(token)
    if session_id is None:
        raise AuthenticationError()

    session = await session_service.load_session(db, session_id)
    if session is None:
        raise AuthenticationError()

    user = await db.get(UserORM, session.user_id)
    if user is None or not user.is_active:
        await session_service.destroy_session(db, session_id)
        raise AuthenticationError()

    await session_service.touch_session(db, session)
    if user.organization_id:
        organization_id_ctx.set(user.organization_id)
    return SessionAuthContext(user, session)


async def require_admin(
    current: SessionAuthContext = Depends(get_current_user),
) -> SessionAuthContext:
    """system_admin or org_admin."""
    if not current.role.has_admin_privileges():
        raise PermissionDeniedError()
    return current


async def require_system_admin(
    current: SessionAuthContext = Depends(get_current_user),
) -> SessionAuthContext:
    if not current.is_system_admin:
        raise PermissionDeniedError()
    return current
