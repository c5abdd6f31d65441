"""
Two-factor (TOTP) enrollment and session verification.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.errors import AuthenticationError, BadRequestError
from backend.app.core.security import SessionAuthContext, get_current_user
from backend.app.schemas.auth import TwoFactorCode, TwoFactorSetupResponse
from backend.app.services import session_service, two_factor
from backend.app.services.audit_trail import AuditTrail
from backend.app.api.deps import get_audit_trail

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    """Issue a fresh secret. Not active until confirmed via /2fa/enable."""
    user = current.user
    if user.two_factor_enabled:
        raise BadRequestError("Two-factor authentication is already enabled")

    secret = two_factor.generate_secret()
    user.two_factor_secret = secret
    await db.flush()
    return TwoFactorSetupResponse(
        secret=secret,
        provisioning_uri=two_factor.provisioning_uri(secret, user.email or user.username),
    )


@router.post("/2fa/enable")
async def enable_two_factor(
    payload: TwoFactorCode,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    user = current.user
    if not user.two_factor_secret:
        raise BadRequestError("Two-factor setup has not been started")
    if not two_factor.verify_code(user.two_factor_secret, payload.code):
        audit.security(
            event_type="2fa_enabled",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
            details={"reason": "invalid_code"},
        )
        raise BadRequestError("Invalid 2FA code")

    user.two_factor_enabled = True
    await session_service.mark_two_factor_verified(db, current.session)
    audit.security(
        event_type="2fa_enabled",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
    )
    return {"message": "Two-factor authentication enabled", "two_factor_enabled": True}


@router.post("/2fa/disable")
async def disable_two_factor(
    payload: TwoFactorCode,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    user = current.user
    if not user.two_factor_enabled:
        raise BadRequestError("Two-factor authentication is not enabled")
    if not two_factor.verify_code(user.two_factor_secret, payload.code):
        audit.security(
            event_type="2fa_disabled",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
            details={"reason": "invalid_code"},
        )
        raise BadRequestError("Invalid 2FA code")

    user.two_factor_enabled = False
    user.two_factor_secret = None
    await db.flush()
    audit.security(
        event_type="2fa_disabled",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
    )
    return {"message": "Two-factor authentication disabled", "two_factor_enabled": False}


@router.post("/verify-2fa")
async def verify_two_factor(
    payload: TwoFactorCode,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """Promote the current session to 2FA-verified."""
    user = current.user
    if not user.two_factor_secret:
        raise BadRequestError("Two-factor authentication is not configured for this account")

    if not two_factor.verify_code(user.two_factor_secret, payload.code):
        audit.security(
            event_type="2fa_verification",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
        )
        raise AuthenticationError("Invalid 2FA code")

    await session_service.mark_two_factor_verified(db, current.session)
    audit.security(
        event_type="2fa_verification",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
    )
    return {"message": "Two-factor authentication verified", "two_factor_authenticated": True}
