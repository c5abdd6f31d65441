"""
User accounts: registration, admin management and self-service.

org_admin manages users of its own organization only; system_admin manages
everybody. Password hashes never leave this module's callers.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import BadRequestError, NotFoundError, PermissionDeniedError
from backend.app.core.security import Role, SessionAuthContext
from backend.app.models.company_orm import CompanyORM
from backend.app.models.permission_orm import UserPermissionORM
from backend.app.models.tenant_orm import OrganizationORM
from backend.app.models.user_orm import UserORM
from backend.app.schemas.auth import RegisterRequest
from backend.app.schemas.users import PasswordChange, ProfileUpdate, UserCreate, UserUpdate
from backend.app.services import auth_service, organization_service, session_service
from backend.app.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)


async def _ensure_unique(db: AsyncSession, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None) -> None:
    taken = await auth_service.username_or_email_taken(db, username, email, exclude_id)
    if taken == "username":
        raise BadRequestError("Username already exists")
    if taken == "email":
        raise BadRequestError("Email already in use")


async def _enforce_password_policy(db: AsyncSession, organization_id: Optional[str], password: str) -> None:
    policy = await organization_service.get_password_policy(db, organization_id)
    problems = auth_service.validate_password_policy(password, policy)
    if problems:
        raise BadRequestError(
            "Password does not meet the organization policy",
            extra={"errors": [{"field": "password", "message": p} for p in problems]},
        )


async def register(
    db: AsyncSession, data: RegisterRequest, audit: AuditTrail
) -> tuple[UserORM, Optional[OrganizationORM]]:
    """
    Self-registration. With ``create_organization`` the registrant gets a new
    trial organization and becomes its org_admin; otherwise a plain user
    without an organization.
    """
    await _ensure_unique(db, data.username, data.email)

    organization = None
    role = Role.USER
    if data.create_organization:
        organization = await organization_service.create_organization(
            db,
            name=data.organization_name,
            identifier=data.organization_identifier,
            domain=data.organization_domain,
            plan="trial",
        )
        role = Role.ORG_ADMIN

    user = UserORM(
        username=data.username,
        email=data.email,
        name=data.name,
        hashed_password=auth_service.hash_password(data.password),
        role=role.value,
        organization_id=organization.id if organization else None,
        status="active",
    )
    db.add(user)
    await db.flush()

    audit.security(
        event_type="registration",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
        details={"created_organization": organization is not None},
    )
    if organization is not None:
        audit.activity(
            user_id=user.id,
            organization_id=organization.id,
            action="create",
            entity="organization",
            entity_id=organization.id,
            details={"name": organization.name},
        )
    return user, organization


def _can_manage(current: SessionAuthContext, user: UserORM) -> bool:
    if current.is_system_admin:
        return True
    if Role.of(user.role) is Role.SYSTEM_ADMIN:
        return False
    return current.role is Role.ORG_ADMIN and user.organization_id == current.organization_id


async def get_managed_user(db: AsyncSession, current: SessionAuthContext, user_id: str) -> UserORM:
    user = await db.get(UserORM, user_id)
    if user is None or not _can_manage(current, user):
        # Users of other tenants are indistinguishable from missing ones
        raise NotFoundError("User not found")
    return user


async def list_users(db: AsyncSession, current: SessionAuthContext) -> List[UserORM]:
    stmt = select(UserORM).order_by(UserORM.username)
    if not current.is_system_admin:
        stmt = stmt.where(UserORM.organization_id == current.organization_id).where(
            UserORM.role != Role.SYSTEM_ADMIN.value
        )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_user(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, data: UserCreate
) -> UserORM:
    role = Role(data.role)
    if role is Role.SYSTEM_ADMIN and not current.is_system_admin:
        raise PermissionDeniedError("Only system administrators can grant system_admin")

    if current.is_system_admin:
        organization_id = data.organization_id
        if organization_id and await organization_service.get_organization(db, organization_id) is None:
            raise BadRequestError("Organization not found")
    else:
        organization_id = current.organization_id

    await _ensure_unique(db, data.username, data.email)
    await _enforce_password_policy(db, organization_id, data.password)

    if data.default_company_id:
        company = await db.get(CompanyORM, data.default_company_id)
        if company is None or company.organization_id != organization_id:
            raise BadRequestError("Default company must belong to the user's organization")

    user = UserORM(
        username=data.username,
        email=data.email,
        name=data.name,
        hashed_password=auth_service.hash_password(data.password),
        role=role.value,
        organization_id=organization_id,
        default_company_id=data.default_company_id,
        status="active",
    )
    db.add(user)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=organization_id,
        action="create",
        entity="user",
        entity_id=user.id,
        details={"username": user.username, "role": user.role},
    )
    return user


async def update_user(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, user_id: str, data: UserUpdate
) -> UserORM:
    user = await get_managed_user(db, current, user_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("role") == Role.SYSTEM_ADMIN.value and not current.is_system_admin:
        raise PermissionDeniedError("Only system administrators can grant system_admin")
    if "email" in changes and changes["email"]:
        await _ensure_unique(db, None, changes["email"], exclude_id=user.id)
    if changes.get("default_company_id"):
        company = await db.get(CompanyORM, changes["default_company_id"])
        if company is None or company.organization_id != user.organization_id:
            raise BadRequestError("Default company must belong to the user's organization")

    updated_fields = []
    for field in ("email", "name", "role", "default_company_id"):
        if field in changes and (changes[field] is not None or field == "default_company_id"):
            setattr(user, field, changes[field])
            updated_fields.append(field)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=user.organization_id,
        action="update",
        entity="user",
        entity_id=user.id,
        details={"updated_fields": updated_fields},
    )
    return user


async def set_user_status(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, user_id: str, status: str
) -> UserORM:
    user = await get_managed_user(db, current, user_id)
    if user.id == current.user_id and status != "active":
        raise BadRequestError("You cannot deactivate your own account")

    user.status = status
    if status == "active":
        user.login_attempts = 0
        user.last_failed_login_at = None
    else:
        await session_service.destroy_user_sessions(db, user.id)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=user.organization_id,
        action="update_status",
        entity="user",
        entity_id=user.id,
        details={"status": status},
    )
    return user


async def delete_user(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, user_id: str
) -> None:
    if user_id == current.user_id:
        raise BadRequestError("You cannot delete your own account")
    user = await get_managed_user(db, current, user_id)

    await db.execute(delete(UserPermissionORM).where(UserPermissionORM.user_id == user.id))
    await session_service.destroy_user_sessions(db, user.id)
    await db.delete(user)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=user.organization_id,
        action="delete",
        entity="user",
        entity_id=user.id,
        details={"username": user.username},
    )


async def update_profile(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, data: ProfileUpdate
) -> UserORM:
    user = current.user
    updated_fields = []
    if data.email and data.email != user.email:
        await _ensure_unique(db, None, data.email, exclude_id=user.id)
        user.email = data.email
        updated_fields.append("email")
    if data.name and data.name != user.name:
        user.name = data.name
        updated_fields.append("name")
    await db.flush()

    audit.activity(
        user_id=user.id,
        organization_id=user.organization_id,
        action="update_profile",
        entity="user",
        entity_id=user.id,
        details={"updated_fields": updated_fields},
    )
    return user


async def change_password(
    db: AsyncSession, current: SessionAuthContext, audit: AuditTrail, data: PasswordChange
) -> None:
    user = current.user
    if not auth_service.verify_password(data.current_password, user.hashed_password):
        audit.security(
            event_type="password_changed",
            status="failure",
            user_id=user.id,
            organization_id=user.organization_id,
            details={"reason": "invalid_current_password"},
        )
        raise BadRequestError("Current password is incorrect")

    await _enforce_password_policy(db, user.organization_id, data.new_password)
    user.hashed_password = auth_service.hash_password(data.new_password)
    await db.flush()

    audit.security(
        event_type="password_changed",
        status="success",
        user_id=user.id,
        organization_id=user.organization_id,
    )
