from typing import Optional

from pydantic import BaseModel


class PermissionFlags(BaseModel):
    view: bool = True
    edit: bool = False
    delete: bool = False
    view_password: bool = False


class PermissionUpsert(PermissionFlags):
    user_id: str
    company_id: str


class PermissionResponse(BaseModel):
    id: str
    user_id: str
    company_id: str
    view: bool
    edit: bool
    delete: bool
    view_password: bool
    company_name: Optional[str] = None

    class Config:
        from_attributes = True
