"""Organization (tenant) and policy settings contracts."""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

Plan = Literal["trial", "basic", "premium", "enterprise"]


class OrganizationResponse(BaseModel):
    id: str
    name: str
    identifier: str
    domain: Optional[str] = None
    status: str
    plan: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    identifier: str = Field(..., min_length=1, max_length=32)
    domain: Optional[str] = Field(None, max_length=255)
    plan: Plan = "basic"
    # Caller without an organization creates its own and becomes org_admin
    initial_setup: bool = False


class OrganizationSettingsResponse(BaseModel):
    organization_id: str
    password_policy: Dict[str, Any]
    two_factor_policy: Dict[str, Any]
    session_policy: Dict[str, Any]
    notification_settings: Dict[str, Any]

    class Config:
        from_attributes = True


class OrganizationSettingsUpdate(BaseModel):
    password_policy: Optional[Dict[str, Any]] = None
    two_factor_policy: Optional[Dict[str, Any]] = None
    session_policy: Optional[Dict[str, Any]] = None
    notification_settings: Optional[Dict[str, Any]] = None
