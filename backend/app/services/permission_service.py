"""
Authorization Model: per-(user, company) permission tuples.

A missing row means no access. ``view_password`` is checked in addition to
``view``, never instead of it. Checks run in a fixed order: tenant isolation,
admin bypass, grant lookup, then the two-factor gate for password reveals.
"""
import logging
from enum import Enum
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import NotFoundError, PermissionDeniedError, TwoFactorRequiredError
from backend.app.core.security import Role, SessionAuthContext
from backend.app.models.company_orm import CompanyORM
from backend.app.models.permission_orm import UserPermissionORM
from backend.app.services import organization_service
from backend.app.services.two_factor import two_factor_required

logger = logging.getLogger(__name__)


class PermissionAction(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"
    VIEW_PASSWORD = "view_password"


async def get_permission(db: AsyncSession, user_id: str, company_id: str) -> Optional[UserPermissionORM]:
    result = await db.execute(
        select(UserPermissionORM).where(
            UserPermissionORM.user_id == user_id,
            UserPermissionORM.company_id == company_id,
        )
    )
    return result.scalar_one_or_none()


async def set_permission(
    db: AsyncSession,
    user_id: str,
    company_id: str,
    *,
    view: bool = True,
    edit: bool = False,
    delete: bool = False,
    view_password: bool = False,
) -> UserPermissionORM:
    """Upsert: update the existing row for the pair or insert a new one."""
    permission = await get_permission(db, user_id, company_id)
    if permission is None:
        permission = UserPermissionORM(user_id=user_id, company_id=company_id)
        db.add(permission)
    permission.view = view
    permission.edit = edit
    permission.delete = delete
    permission.view_password = view_password
    await db.flush()
    return permission


async def grant_full_access(db: AsyncSession, user_id: str, company_id: str) -> UserPermissionORM:
    return await set_permission(db, user_id, company_id, view=True, edit=True, delete=True, view_password=True)


async def remove_permission(db: AsyncSession, user_id: str, company_id: str) -> bool:
    result = await db.execute(
        delete(UserPermissionORM).where(
            UserPermissionORM.user_id == user_id,
            UserPermissionORM.company_id == company_id,
        )
    )
    await db.flush()
    return bool(result.rowcount)


async def list_user_permissions(db: AsyncSession, user_id: str) -> List[UserPermissionORM]:
    result = await db.execute(select(UserPermissionORM).where(UserPermissionORM.user_id == user_id))
    return list(result.scalars().all())


async def viewable_company_ids(db: AsyncSession, user_id: str) -> List[str]:
    result = await db.execute(
        select(UserPermissionORM.company_id).where(
            UserPermissionORM.user_id == user_id,
            UserPermissionORM.view.is_(True),
        )
    )
    return list(result.scalars().all())


def _granted(permission: UserPermissionORM, action: PermissionAction) -> bool:
    if action is PermissionAction.VIEW_PASSWORD:
        return bool(permission.view and permission.view_password)
    return bool(getattr(permission, action.value))


async def authorize(
    db: AsyncSession,
    current: SessionAuthContext,
    company: CompanyORM,
    action: PermissionAction,
) -> None:
    """Raise unless ``current`` may perform ``action`` on ``company``."""
    role = current.role
    if role is not Role.SYSTEM_ADMIN and company.organization_id != current.organization_id:
        logger.warning(
            f"Tenant isolation blocked user {current.user_id} on company {company.id}"
        )
        raise PermissionDeniedError("Access denied to this company")

    if not role.has_admin_privileges():
        permission = await get_permission(db, current.user_id, company.id)
        if permission is None or not _granted(permission, action):
            raise PermissionDeniedError(f"You don't have permission to {action.value.replace('_', ' ')} in this company")

    if action is PermissionAction.VIEW_PASSWORD and not current.session.two_factor_authenticated:
        org_settings = await organization_service.get_organization_settings(db, current.organization_id)
        if two_factor_required(current.user, org_settings):
            raise TwoFactorRequiredError()


async def get_authorized_company(
    db: AsyncSession,
    current: SessionAuthContext,
    company_id: str,
    action: PermissionAction,
) -> CompanyORM:
    company = await db.get(CompanyORM, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    await authorize(db, current, company, action)
    return company
