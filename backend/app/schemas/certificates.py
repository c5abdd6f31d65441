"""
Certificate request/response contracts.

Responses never carry the stored password; it is only returned by the
dedicated reveal endpoint as ``CertificatePasswordResponse``.
"""
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from backend.app.core.clock import as_utc


class CertificateStatus(str, Enum):
    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"


CertificateType = Literal["A1", "A3"]


class CertificateCreate(BaseModel):
    company_id: str
    name: str = Field(..., min_length=1, max_length=255)
    entity: str = Field(..., min_length=1, max_length=255)
    identifier: str = Field(..., min_length=1, max_length=32)
    type: CertificateType
    issued_date: datetime
    expiration_date: datetime
    password: str = Field(..., min_length=1)
    certificate_file: Optional[str] = None
    systems: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        if as_utc(self.expiration_date) <= as_utc(self.issued_date):
            raise ValueError("expiration_date must be after issued_date")
        return self


class CertificateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    entity: Optional[str] = Field(None, min_length=1, max_length=255)
    identifier: Optional[str] = Field(None, min_length=1, max_length=32)
    type: Optional[CertificateType] = None
    issued_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    password: Optional[str] = Field(None, min_length=1)
    certificate_file: Optional[str] = None
    systems: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator(
        "name", "entity", "identifier", "type", "issued_date", "expiration_date", "password", "systems"
    )
    @classmethod
    def _not_null(cls, value):
        # Only certificate_file and notes can be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class CertificateResponse(BaseModel):
    id: str
    company_id: str
    name: str
    entity: str
    identifier: str
    type: str
    issued_date: datetime
    expiration_date: datetime
    certificate_file: Optional[str] = None
    systems: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    status: CertificateStatus
    days_until_expiration: int
    created_by: str
    updated_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CertificatePasswordResponse(BaseModel):
    id: str
    password: str


class CertificateSystemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: Optional[str] = Field(None, max_length=512)
    purpose: Optional[str] = Field(None, max_length=255)


class CertificateSystemResponse(BaseModel):
    id: str
    certificate_id: str
    name: str
    url: Optional[str] = None
    purpose: Optional[str] = None

    class Config:
        from_attributes = True
