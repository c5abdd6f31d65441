"""
Server-side session store.

Sessions are rows in ``user_sessions``; the cookie only carries the signed
id. Expired rows are removed lazily when they are looked up.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import as_utc, utcnow
from backend.app.core.config import get_settings
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.user_orm import UserORM

logger = logging.getLogger(__name__)
settings = get_settings()


async def create_session(
    db: AsyncSession,
    user: UserORM,
    *,
    two_factor_authenticated: bool,
    current_company_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> UserSessionORM:
    now = utcnow()
    session = UserSessionORM(
        id=secrets.token_urlsafe(32),
        user_id=user.id,
        organization_id=user.organization_id,
        current_company_id=current_company_id,
        two_factor_authenticated=two_factor_authenticated,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
        expires_at=now + timedelta(hours=settings.session_max_age_hours),
        last_seen_at=now,
    )
    db.add(session)
    await db.flush()
    return session


async def load_session(db: AsyncSession, session_id: str) -> Optional[UserSessionORM]:
    """Return the live session for ``session_id``, dropping it if expired."""
    session = await db.get(UserSessionORM, session_id)
    if session is None:
        return None
    if as_utc(session.expires_at) <= utcnow():
        logger.debug(f"Session expired for user {session.user_id}")
        await db.delete(session)
        await db.flush()
        return None
    return session


async def touch_session(db: AsyncSession, session: UserSessionORM) -> None:
    session.last_seen_at = utcnow()
    await db.flush()


async def mark_two_factor_verified(db: AsyncSession, session: UserSessionORM) -> None:
    session.two_factor_authenticated = True
    await db.flush()


async def set_current_company(db: AsyncSession, session: UserSessionORM, company_id: Optional[str]) -> None:
    session.current_company_id = company_id
    await db.flush()


async def destroy_session(db: AsyncSession, session_id: str) -> None:
    await db.execute(delete(UserSessionORM).where(UserSessionORM.id == session_id))
    await db.flush()


async def destroy_user_sessions(db: AsyncSession, user_id: str) -> int:
    """Log a user out everywhere. Returns the number of sessions removed."""
    result = await db.execute(delete(UserSessionORM).where(UserSessionORM.user_id == user_id))
    await db.flush()
    return result.rowcount or 0
