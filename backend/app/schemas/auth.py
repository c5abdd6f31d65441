"""Registration, login and two-factor contracts."""
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from backend.app.schemas.companies import CompanyResponse
from backend.app.schemas.organizations import OrganizationResponse
from backend.app.schemas.users import UserResponse


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6)
    create_organization: bool = False
    organization_name: Optional[str] = Field(None, max_length=255)
    organization_identifier: Optional[str] = Field(None, max_length=32)
    organization_domain: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def _organization_fields(self):
        if self.create_organization and not (self.organization_name and self.organization_identifier):
            raise ValueError("organization_name and organization_identifier are required to create an organization")
        return self


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    """Returned by login and GET /api/user."""
    user: UserResponse
    organization: Optional[OrganizationResponse] = None
    companies: List[CompanyResponse] = []
    current_company_id: Optional[str] = None
    requires_two_factor: bool = False


class RegisterResponse(BaseModel):
    user: UserResponse
    organization: Optional[OrganizationResponse] = None
    created_organization: bool = False


class TwoFactorCode(BaseModel):
    code: str = Field(..., min_length=6, max_length=8)


class TwoFactorSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str
