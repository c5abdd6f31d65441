"""
Certificate Lifecycle API Router.

Password material only ever leaves the service through the reveal
endpoints, which require the ``view_password`` grant and, where policy
demands it, a 2FA-verified session.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, get_current_user
from backend.app.schemas.certificates import (
    CertificateCreate,
    CertificatePasswordResponse,
    CertificateResponse,
    CertificateStatus,
    CertificateSystemCreate,
    CertificateSystemResponse,
    CertificateUpdate,
)
from backend.app.services import certificate_service
from backend.app.services.audit_trail import AuditTrail
from backend.app.api.deps import get_audit_trail

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/certificates", response_model=List[CertificateResponse])
async def list_certificates(
    company_id: Optional[str] = Query(None),
    status: Optional[CertificateStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    return await certificate_service.list_certificates(db, current, company_id=company_id, status=status)


@router.post("/certificates", response_model=CertificateResponse, status_code=201)
async def create_certificate(
    payload: CertificateCreate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    cert = await certificate_service.create_certificate(db, current, audit, payload)
    return certificate_service.to_response(cert)


@router.get("/certificates/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    cert = await certificate_service.get_certificate(db, current, audit, certificate_id)
    return certificate_service.to_response(cert)


@router.patch("/certificates/{certificate_id}", response_model=CertificateResponse)
async def update_certificate(
    certificate_id: str,
    payload: CertificateUpdate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    cert = await certificate_service.update_certificate(db, current, audit, certificate_id, payload)
    return certificate_service.to_response(cert)


@router.delete("/certificates/{certificate_id}")
async def delete_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    await certificate_service.delete_certificate(db, current, audit, certificate_id)
    return {"message": "Certificate deleted successfully"}


@router.api_route("/certificates/{certificate_id}/password", methods=["GET", "POST"], response_model=CertificatePasswordResponse)
async def reveal_certificate_password(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    password = await certificate_service.get_certificate_password(db, current, audit, certificate_id)
    return CertificatePasswordResponse(id=certificate_id, password=password)


@router.get("/certificates/{certificate_id}/systems", response_model=List[CertificateSystemResponse])
async def list_certificate_systems(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    return await certificate_service.list_systems(db, current, certificate_id)


@router.post("/certificates/{certificate_id}/systems", response_model=CertificateSystemResponse, status_code=201)
async def add_certificate_system(
    certificate_id: str,
    payload: CertificateSystemCreate,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await certificate_service.add_system(db, current, audit, certificate_id, payload)


@router.delete("/certificates/{certificate_id}/systems/{system_id}")
async def remove_certificate_system(
    certificate_id: str,
    system_id: str,
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail),
):
    await certificate_service.remove_system(db, current, audit, certificate_id, system_id)
    return {"message": "System removed successfully"}
