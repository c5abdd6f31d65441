"""User management router (admin privileges; org_admin limited to its organization)."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, require_admin
from backend.app.models.company_orm import CompanyORM
from backend.app.schemas.permissions import PermissionResponse
from backend.app.schemas.users import UserCreate, UserResponse, UserStatusUpdate, UserUpdate
from backend.app.services import permission_service, user_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.api.deps import get_audit_trail

router = APIRouter()


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
):
    return await user_service.list_users(db, current)


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await user_service.create_user(db, current, audit, payload)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
):
    return await user_service.get_managed_user(db, current, user_id)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await user_service.update_user(db, current, audit, user_id, payload)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await user_service.set_user_status(db, current, audit, user_id, payload.status)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    await user_service.delete_user(db, current, audit, user_id)
    return {"message": "User deleted successfully"}


@router.get("/users/{user_id}/permissions", response_model=List[PermissionResponse])
async def list_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
):
    user = await user_service.get_managed_user(db, current, user_id)
    permissions = await permission_service.list_user_permissions(db, user.id)
    if not permissions:
        return []

    result = await db.execute(
        select(CompanyORM.id, CompanyORM.name).where(CompanyORM.id.in_([p.company_id for p in permissions]))
    )
    names = dict(result.all())
    return [
        PermissionResponse.model_validate(p).model_copy(update={"company_name": names.get(p.company_id)})
        for p in permissions
    ]
