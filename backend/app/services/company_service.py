"""
Company CRUD, scoped by tenant and per-company grants.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import BadRequestError
from backend.app.core.security import Role, SessionAuthContext
from backend.app.models.certificate_orm import CertificateORM, CertificateSystemORM
from backend.app.models.company_orm import CompanyORM
from backend.app.models.permission_orm import UserPermissionORM
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.user_orm import UserORM
from backend.app.services import organization_service, permission_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.services.permission_service import PermissionAction

logger = logging.getLogger(__name__)


async def list_companies(db: AsyncSession, current: SessionAuthContext) -> List[CompanyORM]:
    """Companies the caller can see."""
    stmt = select(CompanyORM).order_by(CompanyORM.name)
    role = current.role
    if role is Role.SYSTEM_ADMIN:
        pass
    elif role is Role.ORG_ADMIN:
        stmt = stmt.where(CompanyORM.organization_id == current.organization_id)
    else:
        company_ids = await permission_service.viewable_company_ids(db, current.user_id)
        if not company_ids:
            return []
        stmt = stmt.where(
            CompanyORM.id.in_(company_ids),
            CompanyORM.organization_id == current.organization_id,
        )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_company(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    *,
    name: str,
    identifier: str,
    organization_id: Optional[str] = None,
) -> CompanyORM:
    """
    Create a company in the caller's organization and give the creator a
    full grant on it. Only system_admin may target another organization.
    """
    if current.is_system_admin and organization_id:
        if await organization_service.get_organization(db, organization_id) is None:
            raise BadRequestError("Organization not found")
        target_org = organization_id
    else:
        target_org = current.organization_id
    if not target_org:
        raise BadRequestError("An organization is required to create a company")

    company = CompanyORM(name=name, identifier=identifier, organization_id=target_org)
    db.add(company)
    await db.flush()

    await permission_service.grant_full_access(db, current.user_id, company.id)

    audit.activity(
        user_id=current.user_id,
        organization_id=target_org,
        company_id=company.id,
        action="create",
        entity="company",
        entity_id=company.id,
        details={"name": name},
    )
    return company


async def get_company(db: AsyncSession, current: SessionAuthContext, company_id: str) -> CompanyORM:
    return await permission_service.get_authorized_company(db, current, company_id, PermissionAction.VIEW)


async def update_company(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    company_id: str,
    changes: Dict[str, Any],
) -> CompanyORM:
    company = await permission_service.get_authorized_company(db, current, company_id, PermissionAction.EDIT)
    updated_fields = []
    for field in ("name", "identifier"):
        if field in changes and changes[field] is not None:
            setattr(company, field, changes[field])
            updated_fields.append(field)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="update",
        entity="company",
        entity_id=company.id,
        details={"updated_fields": updated_fields},
    )
    return company


async def delete_company(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    company_id: str,
) -> None:
    """Hard delete, cascading to certificates, their systems and grants."""
    company = await permission_service.get_authorized_company(db, current, company_id, PermissionAction.DELETE)

    cert_ids = select(CertificateORM.id).where(CertificateORM.company_id == company.id)
    await db.execute(delete(CertificateSystemORM).where(CertificateSystemORM.certificate_id.in_(cert_ids)))
    await db.execute(delete(CertificateORM).where(CertificateORM.company_id == company.id))
    await db.execute(delete(UserPermissionORM).where(UserPermissionORM.company_id == company.id))
    await db.execute(
        update(UserORM).where(UserORM.default_company_id == company.id).values(default_company_id=None)
    )
    await db.execute(
        update(UserSessionORM).where(UserSessionORM.current_company_id == company.id).values(current_company_id=None)
    )
    await db.delete(company)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="delete",
        entity="company",
        entity_id=company.id,
        details={"name": company.name},
    )
