"""
Dashboard aggregates.

Certificate status is derived per row at query time, so the counts here are
computed in Python over the selected certificates rather than in SQL.
"""
from collections import Counter
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.security import SessionAuthContext
from backend.app.models.certificate_orm import CertificateORM
from backend.app.models.company_orm import CompanyORM
from backend.app.models.tenant_orm import OrganizationORM
from backend.app.models.user_orm import UserORM
from backend.app.schemas.certificates import CertificateStatus
from backend.app.schemas.stats import (
    CertificateStats,
    DashboardStats,
    OrganizationOverview,
    RecentLogin,
    UpcomingExpiration,
    UserStats,
)
from backend.app.services import certificate_service

UPCOMING_LIMIT = 5
RECENT_LOGINS_LIMIT = 5


async def dashboard_stats(db: AsyncSession, current: SessionAuthContext) -> DashboardStats:
    """Counts over the certificates the caller can view."""
    now = utcnow()
    items = await certificate_service.list_certificates(db, current, now=now)
    statuses = Counter(item.status for item in items)
    types = Counter(item.type for item in items)

    upcoming = [
        UpcomingExpiration(
            id=item.id,
            name=item.name,
            company_id=item.company_id,
            expiration_date=item.expiration_date,
            days_until_expiration=item.days_until_expiration,
            status=item.status.value,
        )
        for item in sorted(items, key=lambda i: i.expiration_date)
        if item.status is not CertificateStatus.EXPIRED
    ][:UPCOMING_LIMIT]

    return DashboardStats(
        total=len(items),
        valid=statuses[CertificateStatus.VALID],
        expiring=statuses[CertificateStatus.EXPIRING],
        expired=statuses[CertificateStatus.EXPIRED],
        a1=types["A1"],
        a3=types["A3"],
        upcoming=upcoming,
    )


async def _count_by(db: AsyncSession, column) -> dict:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {key: count for key, count in result.all() if key is not None}


async def organizations_overview(db: AsyncSession) -> List[OrganizationOverview]:
    users = await _count_by(db, UserORM.organization_id)
    companies = await _count_by(db, CompanyORM.organization_id)
    cert_rows = await db.execute(
        select(CompanyORM.organization_id, func.count(CertificateORM.id))
        .join(CertificateORM, CertificateORM.company_id == CompanyORM.id)
        .group_by(CompanyORM.organization_id)
    )
    certificates = dict(cert_rows.all())

    orgs = await db.execute(select(OrganizationORM).order_by(OrganizationORM.name))
    return [
        OrganizationOverview(
            id=org.id,
            name=org.name,
            identifier=org.identifier,
            status=org.status,
            plan=org.plan,
            users=users.get(org.id, 0),
            companies=companies.get(org.id, 0),
            certificates=certificates.get(org.id, 0),
        )
        for org in orgs.scalars().all()
    ]


async def user_stats(db: AsyncSession) -> UserStats:
    result = await db.execute(select(UserORM))
    users = list(result.scalars().all())
    active = sum(1 for u in users if u.is_active)

    recent = sorted(
        (u for u in users if u.last_login_at is not None),
        key=lambda u: u.last_login_at,
        reverse=True,
    )[:RECENT_LOGINS_LIMIT]

    return UserStats(
        total=len(users),
        active=active,
        inactive=len(users) - active,
        by_role=dict(Counter(u.role for u in users)),
        by_organization=dict(Counter(u.organization_id for u in users if u.organization_id)),
        recent_logins=[
            RecentLogin(id=u.id, username=u.username, organization_id=u.organization_id, last_login_at=u.last_login_at)
            for u in recent
        ],
    )


async def certificate_stats(db: AsyncSession, organization_id: Optional[str] = None) -> CertificateStats:
    stmt = select(CertificateORM.type, CertificateORM.expiration_date)
    if organization_id:
        stmt = stmt.join(CompanyORM, CompanyORM.id == CertificateORM.company_id).where(
            CompanyORM.organization_id == organization_id
        )
    rows = (await db.execute(stmt)).all()

    now = utcnow()
    statuses = Counter(certificate_service.certificate_status(expiration, now) for _, expiration in rows)
    return CertificateStats(
        total=len(rows),
        valid=statuses[CertificateStatus.VALID],
        expiring=statuses[CertificateStatus.EXPIRING],
        expired=statuses[CertificateStatus.EXPIRED],
        by_type=dict(Counter(cert_type for cert_type, _ in rows)),
    )
