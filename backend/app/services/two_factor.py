"""
TOTP second factor (RFC 6238) via pyotp.

Secrets are base32 strings stored on the user row. Codes are accepted one
30-second step either side of now to absorb clock drift.
"""
from typing import Optional

import pyotp

from backend.app.core.config import get_settings
from backend.app.core.security import Role
from backend.app.models.tenant_orm import OrganizationSettingsORM
from backend.app.models.user_orm import UserORM

settings = get_settings()

VALID_WINDOW = 1


def generate_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, account_name: str) -> str:
    """otpauth:// URI for authenticator apps (rendered as a QR code by clients)."""
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=settings.totp_issuer)


def verify_code(secret: Optional[str], code: str) -> bool:
    if not secret or not code:
        return False
    code = code.strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=VALID_WINDOW)


def two_factor_required(user: UserORM, org_settings: Optional[OrganizationSettingsORM]) -> bool:
    """
    Whether this user's session must pass the second factor before
    secret-revealing operations.

    Personal opt-in always applies. Otherwise the organization policy decides:
    ``required`` for everybody, or ``required_for_admins`` for admin roles.
    """
    if user.two_factor_enabled:
        return True
    if org_settings is None:
        return False
    policy = org_settings.two_factor_policy or {}
    if policy.get("required"):
        return True
    if policy.get("required_for_admins") and Role.of(user.role).has_admin_privileges():
        return True
    return False
