import logging
import os
import re
from datetime import timedelta
from math import ceil
from typing import Any, Dict, List, Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import as_utc, utcnow
from backend.app.core.config import get_settings
from backend.app.core.errors import AuthenticationError
from backend.app.core.security import Role
from backend.app.models.user_orm import UserORM
from backend.app.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)
settings = get_settings()

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 64
SALT_BYTES = 16

INVALID_CREDENTIALS = "Invalid username or password"


def _scrypt(salt: str, length: int = KEY_LENGTH) -> Scrypt:
    return Scrypt(salt=salt.encode("utf-8"), length=length, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)


def hash_password(plain: str) -> str:
    """Return ``hex(scrypt(plain)) + "." + hex_salt``."""
    salt = os.urandom(SALT_BYTES).hex()
    derived = _scrypt(salt).derive(plain.encode("utf-8"))
    return f"{derived.hex()}.{salt}"


def verify_password(plain: str, stored: str) -> bool:
    """Constant-time check of ``plain`` against a stored hash. Never raises."""
    key_hex, sep, salt = (stored or "").partition(".")
    if not sep or not salt:
        return False
    try:
        expected = bytes.fromhex(key_hex)
    except ValueError:
        return False
    if not expected:
        return False
    try:
        _scrypt(salt, len(expected)).verify(plain.encode("utf-8"), expected)
        return True
    except InvalidKey:
        return False


def validate_password_policy(password: str, policy: Optional[Dict[str, Any]]) -> List[str]:
    """Return human-readable violations of an organization password policy."""
    if not policy:
        return []
    problems = []
    min_length = policy.get("min_length") or 0
    if len(password) < min_length:
        problems.append(f"Password must be at least {min_length} characters")
    if policy.get("require_uppercase") and not re.search(r"[A-Z]", password):
        problems.append("Password must contain an uppercase letter")
    if policy.get("require_lowercase") and not re.search(r"[a-z]", password):
        problems.append("Password must contain a lowercase letter")
    if policy.get("require_numbers") and not re.search(r"\d", password):
        problems.append("Password must contain a number")
    if policy.get("require_special_chars") and not re.search(r"[^A-Za-z0-9]", password):
        problems.append("Password must contain a special character")
    return problems


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[UserORM]:
    result = await db.execute(select(UserORM).where(UserORM.username == username))
    return result.scalar_one_or_none()


async def username_or_email_taken(db: AsyncSession, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None) -> Optional[str]:
    """Return "username" or "email" when already in use, else None."""
    clauses = []
    if username:
        clauses.append(UserORM.username == username)
    if email:
        clauses.append(func.lower(UserORM.email) == email.lower())
    if not clauses:
        return None
    stmt = select(UserORM).where(or_(*clauses))
    if exclude_id:
        stmt = stmt.where(UserORM.id != exclude_id)
    result = await db.execute(stmt)
    for user in result.scalars().all():
        if username and user.username == username:
            return "username"
        return "email"
    return None


async def authenticate_user(
    db: AsyncSession,
    username: str,
    password: str,
    audit: AuditTrail,
    ip_address: Optional[str] = None,
) -> UserORM:
    """
    Check credentials with lockout bookkeeping.

    Order: account status, lockout window, password. Each rejection emits a
    ``login_attempt`` security log carrying a ``reason`` before raising.
    """
    user = await get_user_by_username(db, username)
    if user is None:
        audit.security(
            event_type="login_attempt",
            status="failure",
            details={"reason": "unknown_user", "username": username},
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not user.is_active:
        audit.security(
            event_type="login_attempt",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
            details={"reason": "account_inactive"},
        )
        raise AuthenticationError("Account is inactive")

    now = utcnow()
    if user.login_attempts >= settings.login_max_attempts:
        lockout = timedelta(minutes=settings.login_lockout_minutes)
        last_failed = as_utc(user.last_failed_login_at)
        elapsed = now - last_failed if last_failed else lockout
        if elapsed < lockout:
            remaining = ceil((lockout - elapsed).total_seconds() / 60)
            audit.security(
                event_type="login_attempt",
                status="failure",
                user_id=user.id,
                organization_id=user.organization_id,
                details={"reason": "account_locked", "remaining_lock_time": remaining},
            )
            raise AuthenticationError(f"Account is locked. Try again in {remaining} minute(s).")
        user.login_attempts = 0

    if not verify_password(password, user.hashed_password):
        user.login_attempts = (user.login_attempts or 0) + 1
        user.last_failed_login_at = now
        await db.commit()
        audit.security(
            event_type="login_attempt",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
            details={"reason": "invalid_password", "attempts": user.login_attempts},
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.login_attempts = 0
    user.last_failed_login_at = None
    user.last_login_at = now
    user.last_login_ip = ip_address
    await db.flush()
    return user


async def seed_system_admin(db: AsyncSession) -> Optional[UserORM]:
    """Create the bootstrap system_admin on an empty database. Password from env."""
    if not settings.seed_admin_password:
        return None
    existing = await db.execute(select(UserORM).limit(1))
    if existing.scalar_one_or_none():
        return None
    admin = UserORM(
        username=settings.seed_admin_username,
        email=settings.seed_admin_email,
        name="System Administrator",
        hashed_password=hash_password(settings.seed_admin_password),
        role=Role.SYSTEM_ADMIN.value,
        status="active",
    )
    db.add(admin)
    await db.commit()
    logger.info(f"Seeded system administrator '{admin.username}'")
    return admin
