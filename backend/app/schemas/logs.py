from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ActivityLogResponse(BaseModel):
    id: str
    user_id: str
    organization_id: Optional[str] = None
    company_id: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class SecurityLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    event_type: str
    status: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True
