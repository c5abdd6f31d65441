"""Tenant-wide aggregate dashboards for the SaaS operator (system_admin only)."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, require_system_admin
from backend.app.schemas.stats import CertificateStats, OrganizationOverview, UserStats
from backend.app.services import stats_service

router = APIRouter()


@router.get("/admin/organizations", response_model=List[OrganizationOverview])
async def organizations_overview(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_system_admin),
):
    return await stats_service.organizations_overview(db)


@router.get("/admin/users/stats", response_model=UserStats)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_system_admin),
):
    return await stats_service.user_stats(db)


@router.get("/admin/certificates/stats", response_model=CertificateStats)
async def certificate_stats(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_system_admin),
):
    return await stats_service.certificate_stats(db)
