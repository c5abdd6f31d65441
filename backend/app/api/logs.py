"""
Audit log queries. Newest first; org_admin only ever sees its own
organization regardless of the filter it passes.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import as_utc
from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, require_admin
from backend.app.schemas.logs import ActivityLogResponse, SecurityLogResponse
from backend.app.services import audit_trail

router = APIRouter()


def _scoped_organization(current: SessionAuthContext, requested: Optional[str]) -> Optional[str]:
    if current.is_system_admin:
        return requested
    return current.organization_id


@router.get("/logs", response_model=List[ActivityLogResponse])
async def activity_logs(
    user_id: Optional[str] = None,
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    company_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(audit_trail.DEFAULT_QUERY_LIMIT, ge=1, le=audit_trail.MAX_QUERY_LIMIT),
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
):
    return await audit_trail.query_activity_logs(
        db,
        user_id=user_id,
        entity=entity,
        entity_id=entity_id,
        organization_id=_scoped_organization(current, organization_id),
        company_id=company_id,
        date_from=as_utc(date_from),
        date_to=as_utc(date_to),
        limit=limit,
    )


@router.get("/security-logs", response_model=List[SecurityLogResponse])
async def security_logs(
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    status: Optional[str] = None,
    organization_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(audit_trail.DEFAULT_QUERY_LIMIT, ge=1, le=audit_trail.MAX_QUERY_LIMIT),
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(require_admin),
):
    return await audit_trail.query_security_logs(
        db,
        user_id=user_id,
        event_type=event_type,
        status=status,
        organization_id=_scoped_organization(current, organization_id),
        date_from=as_utc(date_from),
        date_to=as_utc(date_to),
        limit=limit,
    )
