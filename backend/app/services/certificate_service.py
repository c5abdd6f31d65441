"""
Certificate Lifecycle Manager.

CRUD over certificates with the stored password encrypted at rest. Status
is derived from ``expiration_date`` on every read and never stored. Every
mutation and every password reveal appends an activity log entry; details
name the fields that changed but never carry secret values.
"""
import logging
from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import crypto
from backend.app.core.clock import as_utc, utcnow
from backend.app.core.config import get_settings
from backend.app.core.errors import BadRequestError, NotFoundError
from backend.app.core.security import SessionAuthContext
from backend.app.models.certificate_orm import CertificateORM, CertificateSystemORM
from backend.app.models.company_orm import CompanyORM
from backend.app.schemas.certificates import (
    CertificateCreate,
    CertificateResponse,
    CertificateStatus,
    CertificateSystemCreate,
    CertificateUpdate,
)
from backend.app.services import company_service, permission_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.services.permission_service import PermissionAction

logger = logging.getLogger(__name__)
settings = get_settings()

SECONDS_PER_DAY = 86400
ENTITY = "certificate"


def days_until_expiration(expiration_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days left, rounded up. 0 or less means expired."""
    now = as_utc(now) if now else utcnow()
    delta = as_utc(expiration_date) - now
    return ceil(delta.total_seconds() / SECONDS_PER_DAY)


def certificate_status(
    expiration_date: datetime,
    now: Optional[datetime] = None,
    threshold_days: Optional[int] = None,
) -> CertificateStatus:
    if threshold_days is None:
        threshold_days = settings.expiring_threshold_days
    days = days_until_expiration(expiration_date, now)
    if days <= 0:
        return CertificateStatus.EXPIRED
    if days <= threshold_days:
        return CertificateStatus.EXPIRING
    return CertificateStatus.VALID


def to_response(cert: CertificateORM, now: Optional[datetime] = None) -> CertificateResponse:
    now = now or utcnow()
    return CertificateResponse(
        id=cert.id,
        company_id=cert.company_id,
        name=cert.name,
        entity=cert.entity,
        identifier=cert.identifier,
        type=cert.type,
        issued_date=as_utc(cert.issued_date),
        expiration_date=as_utc(cert.expiration_date),
        certificate_file=cert.certificate_file,
        systems=list(cert.systems or []),
        notes=cert.notes,
        status=certificate_status(cert.expiration_date, now),
        days_until_expiration=days_until_expiration(cert.expiration_date, now),
        created_by=cert.created_by,
        updated_by=cert.updated_by,
        created_at=as_utc(cert.created_at),
        updated_at=as_utc(cert.updated_at),
    )


async def _load(db: AsyncSession, certificate_id: str) -> CertificateORM:
    cert = await db.get(CertificateORM, certificate_id)
    if cert is None:
        raise NotFoundError("Certificate not found")
    return cert


async def _authorized(
    db: AsyncSession,
    current: SessionAuthContext,
    certificate_id: str,
    action: PermissionAction,
) -> tuple[CertificateORM, CompanyORM]:
    cert = await _load(db, certificate_id)
    company = await permission_service.get_authorized_company(db, current, cert.company_id, action)
    return cert, company


async def create_certificate(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    data: CertificateCreate,
) -> CertificateORM:
    company = await permission_service.get_authorized_company(db, current, data.company_id, PermissionAction.EDIT)

    cert = CertificateORM(
        company_id=company.id,
        name=data.name,
        entity=data.entity,
        identifier=data.identifier,
        type=data.type,
        issued_date=as_utc(data.issued_date),
        expiration_date=as_utc(data.expiration_date),
        password=crypto.encrypt(data.password),
        certificate_file=data.certificate_file,
        systems=list(data.systems),
        notes=data.notes,
        created_by=current.user_id,
        updated_by=current.user_id,
    )
    db.add(cert)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="create",
        entity=ENTITY,
        entity_id=cert.id,
        details={"name": cert.name, "type": cert.type},
    )
    return cert


async def list_certificates(
    db: AsyncSession,
    current: SessionAuthContext,
    company_id: Optional[str] = None,
    status: Optional[CertificateStatus] = None,
    now: Optional[datetime] = None,
) -> List[CertificateResponse]:
    """
    Certificates in one company (when ``company_id`` is given) or in every
    company the caller can view, optionally filtered by derived status.
    """
    if company_id:
        await permission_service.get_authorized_company(db, current, company_id, PermissionAction.VIEW)
        company_ids = [company_id]
    else:
        company_ids = [c.id for c in await company_service.list_companies(db, current)]
    if not company_ids:
        return []

    result = await db.execute(
        select(CertificateORM)
        .where(CertificateORM.company_id.in_(company_ids))
        .order_by(CertificateORM.expiration_date)
    )
    now = now or utcnow()
    items = [to_response(cert, now) for cert in result.scalars().all()]
    if status is not None:
        items = [item for item in items if item.status == status]
    return items


async def get_certificate(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
) -> CertificateORM:
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.VIEW)
    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="view",
        entity=ENTITY,
        entity_id=cert.id,
        details={"name": cert.name},
    )
    return cert


async def get_certificate_password(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
) -> str:
    """
    Decrypt and return the certificate password.

    Requires ``view`` + ``view_password`` on the owning company and, when the
    account or organization policy mandates it, a 2FA-verified session.
    """
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.VIEW_PASSWORD)
    plaintext = crypto.decrypt(cert.password)

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="view_password",
        entity=ENTITY,
        entity_id=cert.id,
        details={"name": cert.name},
    )
    return plaintext


UPDATABLE_FIELDS = (
    "name", "entity", "identifier", "type", "issued_date", "expiration_date",
    "certificate_file", "systems", "notes",
)
CLEARABLE_FIELDS = ("certificate_file", "notes")


async def update_certificate(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
    data: CertificateUpdate,
) -> CertificateORM:
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.EDIT)
    changes: Dict[str, Any] = data.model_dump(exclude_unset=True)

    updated_fields = []
    for field in UPDATABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if value is None and field not in CLEARABLE_FIELDS:
            continue
        if field in ("issued_date", "expiration_date"):
            value = as_utc(value)
        setattr(cert, field, value)
        updated_fields.append(field)

    if changes.get("password"):
        cert.password = crypto.encrypt(changes["password"])
        updated_fields.append("password")

    if as_utc(cert.expiration_date) <= as_utc(cert.issued_date):
        raise BadRequestError("expiration_date must be after issued_date")

    cert.updated_by = current.user_id
    cert.updated_at = utcnow()
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="update",
        entity=ENTITY,
        entity_id=cert.id,
        details={"updated_fields": updated_fields},
    )
    return cert


async def delete_certificate(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
) -> None:
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.DELETE)
    await db.execute(delete(CertificateSystemORM).where(CertificateSystemORM.certificate_id == cert.id))
    await db.delete(cert)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="delete",
        entity=ENTITY,
        entity_id=cert.id,
        details={"name": cert.name},
    )


# Dependent systems


async def list_systems(
    db: AsyncSession, current: SessionAuthContext, certificate_id: str
) -> List[CertificateSystemORM]:
    cert, _ = await _authorized(db, current, certificate_id, PermissionAction.VIEW)
    result = await db.execute(
        select(CertificateSystemORM)
        .where(CertificateSystemORM.certificate_id == cert.id)
        .order_by(CertificateSystemORM.name)
    )
    return list(result.scalars().all())


async def add_system(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
    data: CertificateSystemCreate,
) -> CertificateSystemORM:
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.EDIT)
    system = CertificateSystemORM(certificate_id=cert.id, name=data.name, url=data.url, purpose=data.purpose)
    db.add(system)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="create",
        entity="certificate_system",
        entity_id=system.id,
        details={"certificate_id": cert.id, "name": system.name},
    )
    return system


async def remove_system(
    db: AsyncSession,
    current: SessionAuthContext,
    audit: AuditTrail,
    certificate_id: str,
    system_id: str,
) -> None:
    cert, company = await _authorized(db, current, certificate_id, PermissionAction.EDIT)
    system = await db.get(CertificateSystemORM, system_id)
    if system is None or system.certificate_id != cert.id:
        raise NotFoundError("System not found")
    await db.delete(system)
    await db.flush()

    audit.activity(
        user_id=current.user_id,
        organization_id=company.organization_id,
        company_id=company.id,
        action="delete",
        entity="certificate_system",
        entity_id=system_id,
        details={"certificate_id": cert.id, "name": system.name},
    )
