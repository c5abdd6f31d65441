from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    identifier: str = Field(..., min_length=1, max_length=32)
    organization_id: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    identifier: Optional[str] = Field(None, min_length=1, max_length=32)


class CompanyResponse(BaseModel):
    id: str
    name: str
    identifier: str
    organization_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SwitchCompanyRequest(BaseModel):
    company_id: str
