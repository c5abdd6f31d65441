"""Grant and revoke per-company permissions (admin privileges)."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.errors import NotFoundError
from backend.app.core.security import SessionAuthContext, require_admin
from backend.app.models.company_orm import CompanyORM
from backend.app.schemas.permissions import PermissionResponse, PermissionUpsert
from backend.app.services import permission_service, user_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.api.deps import get_audit_trail

router = APIRouter()


async def _company_in_scope(db: AsyncSession, current: SessionAuthContext, company_id: str) -> CompanyORM:
    company = await db.get(CompanyORM, company_id)
    if company is None or (not current.is_system_admin and company.organization_id != current.organization_id):
        raise NotFoundError("Company not found")
    return company


@router.post("/permissions", response_model=PermissionResponse)
async def upsert_permission(
    payload: PermissionUpsert,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    user = await user_service.get_managed_user(db, current, payload.user_id)
    company = await _company_in_scope(db, current, payload.company_id)

    permission = await permission_service.set_permission(
        db,
        user.id,
        company.id,
        view=payload.view,
        edit=payload.edit,
        delete=payload.delete,
        view_password=payload.view_password,
    )
    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="grant",
        entity="permission",
        entity_id=permission.id,
        details={
            "target_user_id": user.id,
            "view": payload.view,
            "edit": payload.edit,
            "delete": payload.delete,
            "view_password": payload.view_password,
        },
    )
    return PermissionResponse.model_validate(permission).model_copy(update={"company_name": company.name})


@router.delete("/permissions")
async def revoke_permission(
    user_id: str = Query(...),
    company_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    user = await user_service.get_managed_user(db, current, user_id)
    company = await _company_in_scope(db, current, company_id)

    if not await permission_service.remove_permission(db, user.id, company.id):
        raise NotFoundError("Permission not found")

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="revoke",
        entity="permission",
        details={"target_user_id": user.id},
    )
    return {"message": "Permission removed successfully"}
