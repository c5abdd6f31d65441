"""
Authentication router for CertGuard.

Registration, login/logout with server-side sessions, and self-service
profile and password changes.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.database import get_db
from backend.app.core.security import (
    SessionAuthContext,
    get_current_user,
    read_session_id,
    sign_session_id,
)
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.user_orm import UserORM
from backend.app.schemas.auth import LoginRequest, RegisterRequest, RegisterResponse, SessionResponse
from backend.app.schemas.companies import CompanyResponse
from backend.app.schemas.organizations import OrganizationResponse
from backend.app.schemas.users import PasswordChange, ProfileUpdate, UserResponse
from backend.app.services import (
    auth_service,
    company_service,
    organization_service,
    session_service,
    user_service,
)
from backend.app.services.audit_trail import AuditTrail
from backend.app.services.two_factor import two_factor_required
from backend.app.api.deps import get_audit_trail

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()


def set_session_cookie(response: Response, session: UserSessionORM) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sign_session_id(session.id, session.expires_at),
        max_age=settings.session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


async def build_session_response(db: AsyncSession, user: UserORM, session: UserSessionORM) -> SessionResponse:
    current = SessionAuthContext(user, session)
    organization = await organization_service.get_organization(db, user.organization_id)
    companies = await company_service.list_companies(db, current)
    org_settings = await organization_service.get_organization_settings(db, user.organization_id)
    return SessionResponse(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(organization) if organization else None,
        companies=[CompanyResponse.model_validate(c) for c in companies],
        current_company_id=session.current_company_id,
        requires_two_factor=two_factor_required(user, org_settings) and not session.two_factor_authenticated,
    )


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """
    Create an account, optionally with a new organization (registrant
    becomes its org_admin).
    """
    user, organization = await user_service.register(db, payload, audit)
    return RegisterResponse(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(organization) if organization else None,
        created_organization=organization is not None,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """
    Check credentials and start a session.

    When the account or organization policy requires a second factor the
    session starts unverified and ``requires_two_factor`` is true.
    """
    client_ip = request.client.host if request.client else None
    user = await auth_service.authenticate_user(db, payload.username, payload.password, audit, client_ip)

    org_settings = await organization_service.get_organization_settings(db, user.organization_id)
    needs_two_factor = two_factor_required(user, org_settings)

    probe = SessionAuthContext(user, UserSessionORM(two_factor_authenticated=not needs_two_factor))
    companies = await company_service.list_companies(db, probe)
    current_company_id = user.default_company_id or (companies[0].id if companies else None)

    session = await session_service.create_session(
        db,
        user,
        two_factor_authenticated=not needs_two_factor,
        current_company_id=current_company_id,
        ip_address=client_ip,
        user_agent=request.headers.get("user-agent"),
    )
    set_session_cookie(response, session)

    audit.security(
        event_type="login",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
        details={"requires_two_factor": needs_two_factor},
    )
    audit.activity(
        user_id=user.id,
        organization_id=user.organization_id,
        action="login",
        entity="user",
        entity_id=user.id,
    )
    logger.info(f"User {user.id} logged in")
    return await build_session_response(db, user, session)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """End the session. The log entry is written before the session is destroyed."""
    token = request.cookies.get(settings.session_cookie_name)
    session_id: Optional[str] = read_session_id(token) if token else None
    session = await session_service.load_session(db, session_id) if session_id else None

    if session is not None:
        audit.activity(
            user_id=session.user_id,
            organization_id=session.organization_id,
            action="logout",
            entity="user",
            entity_id=session.user_id,
        )
        audit.security(
            event_type="logout",
            status="success",
            user_id=session.user_id,
            organization_id=session.organization_id,
        )
        await session_service.destroy_session(db, session.id)

    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/user", response_model=SessionResponse)
async def current_user(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    return await build_session_response(db, current.user, current.session)


@router.patch("/user/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    user = await user_service.update_profile(db, current, audit, payload)
    return UserResponse.model_validate(user)


@router.post("/user/password")
async def change_password(
    payload: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    await user_service.change_password(db, current, audit, payload)
    return {"message": "Password updated successfully"}
