"""
User account contracts. Password hashes and TOTP secrets are never part
of any response model.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

RoleName = Literal["system_admin", "org_admin", "user"]
UserStatus = Literal["active", "inactive"]


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    name: str
    role: str
    organization_id: Optional[str] = None
    default_company_id: Optional[str] = None
    status: str
    two_factor_enabled: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6)
    role: RoleName = "user"
    organization_id: Optional[str] = None
    default_company_id: Optional[str] = None


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[RoleName] = None
    default_company_id: Optional[str] = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
