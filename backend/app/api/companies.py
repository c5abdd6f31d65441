from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, get_current_user
from backend.app.schemas.companies import CompanyCreate, CompanyResponse, CompanyUpdate, SwitchCompanyRequest
from backend.app.services import company_service, permission_service, session_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.services.permission_service import PermissionAction
from backend.app.api.deps import get_audit_trail

router = APIRouter()


@router.get("/companies", response_model=List[CompanyResponse])
async def list_companies(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    return await company_service.list_companies(db, current)


@router.post("/companies", response_model=CompanyResponse, status_code=201)
async def create_company(
    payload: CompanyCreate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """The creator is granted full access on the new company."""
    return await company_service.create_company(
        db, current, audit,
        name=payload.name,
        identifier=payload.identifier,
        organization_id=payload.organization_id,
    )


@router.get("/companies/{company_id}", response_model=CompanyResponse)
async def get_company(
    company_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    return await company_service.get_company(db, current, company_id)


@router.patch("/companies/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: str,
    payload: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await company_service.update_company(
        db, current, audit, company_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/companies/{company_id}")
async def delete_company(
    company_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    await company_service.delete_company(db, current, audit, company_id)
    return {"message": "Company deleted successfully"}


@router.post("/switch-company")
async def switch_company(
    payload: SwitchCompanyRequest,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    company = await permission_service.get_authorized_company(db, current, payload.company_id, PermissionAction.VIEW)
    await session_service.set_current_company(db, current.session, company.id)
    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="switch_company",
        entity="company",
        entity_id=company.id,
    )
    return {"message": "Company switched", "current_company_id": company.id}
