"""Dashboard aggregate contracts."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class UpcomingExpiration(BaseModel):
    id: str
    name: str
    company_id: str
    expiration_date: datetime
    days_until_expiration: int
    status: str


class DashboardStats(BaseModel):
    total: int
    valid: int
    expiring: int
    expired: int
    a1: int
    a3: int
    upcoming: List[UpcomingExpiration]


class OrganizationOverview(BaseModel):
    id: str
    name: str
    identifier: str
    status: str
    plan: str
    users: int
    companies: int
    certificates: int


class RecentLogin(BaseModel):
    id: str
    username: str
    organization_id: Optional[str] = None
    last_login_at: Optional[datetime] = None


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: Dict[str, int]
    by_organization: Dict[str, int]
    recent_logins: List[RecentLogin]


class CertificateStats(BaseModel):
    total: int
    valid: int
    expiring: int
    expired: int
    by_type: Dict[str, int]
