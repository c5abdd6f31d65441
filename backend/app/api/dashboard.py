from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import SessionAuthContext, get_current_user
from backend.app.schemas.stats import DashboardStats
from backend.app.services import stats_service

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current: SessionAuthContext = Depends(get_current_user),
):
    """Certificate counts over every company the caller can view."""
    return await stats_service.dashboard_stats(db, current)
