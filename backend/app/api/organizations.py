"""Organizations and per-organization policy settings."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.errors import NotFoundError, PermissionDeniedError
from backend.app.core.security import (
    Role,
    SessionAuthContext,
    get_current_user,
    require_admin,
    require_system_admin,
)
from backend.app.schemas.organizations import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationSettingsResponse,
    OrganizationSettingsUpdate,
)
from backend.app.services import organization_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.api.deps import get_audit_trail

logger = logging.getLogger(__name__)
router = APIRouter()


def _target_organization(current: SessionAuthContext, organization_id: Optional[str]) -> str:
    target = organization_id if (current.is_system_admin and organization_id) else current.organization_id
    if not target:
        raise NotFoundError("Organization not found")
    return target


@router.get("/organizations", response_model=List[OrganizationResponse])
async def list_organizations(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_system_admin),
):
    return await organization_service.list_organizations(db)


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    payload: OrganizationCreate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """
    system_admin creates any organization. A user without an organization
    may run ``initial_setup`` once and becomes the new tenant's org_admin.
    """
    initial_setup = payload.initial_setup and not current.is_system_admin
    if not current.is_system_admin:
        if not initial_setup or current.organization_id:
            raise PermissionDeniedError()

    org = await organization_service.create_organization(
        db,
        name=payload.name,
        identifier=payload.identifier,
        domain=payload.domain,
        plan=payload.plan,
    )

    if initial_setup:
        current.user.organization_id = org.id
        current.user.role = Role.ORG_ADMIN.value
        current.session.organization_id = org.id
        await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=org.id,
        action="create",
        entity="organization",
        entity_id=org.id,
        details={"name": org.name, "initial_setup": initial_setup},
    )
    return org


@router.get("/my-organization", response_model=OrganizationResponse)
async def my_organization(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    org = await organization_service.get_organization(db, current.organization_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


@router.get("/organization-settings", response_model=OrganizationSettingsResponse)
async def get_organization_settings(
    organization_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    target = _target_organization(current, organization_id)
    org_settings = await organization_service.get_organization_settings(db, target)
    if org_settings is None:
        raise NotFoundError("Organization settings not found")
    return org_settings


@router.patch("/organization-settings", response_model=OrganizationSettingsResponse)
async def update_organization_settings(
    payload: OrganizationSettingsUpdate,
    organization_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    target = _target_organization(current, organization_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    org_settings = await organization_service.update_organization_settings(db, target, changes)

    audit.activity(
        user_id=current.user_id,
        organization_id=target,
        action="update",
        entity="organization_settings",
        entity_id=org_settings.id,
        details={"updated_sections": sorted(changes)},
    )
    return org_settings
