"""Models package."""

from backend.app.models.tenant_orm import OrganizationORM, OrganizationSettingsORM
from backend.app.models.user_orm import UserORM
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.company_orm import CompanyORM
from backend.app.models.certificate_orm import CertificateORM, CertificateSystemORM
from backend.app.models.permission_orm import UserPermissionORM
from backend.app.models.audit_orm import ActivityLogORM, SecurityLogORM

__all__ = [
    "OrganizationORM",
    "OrganizationSettingsORM",
    "UserORM",
    "UserSessionORM",
    "CompanyORM",
    "CertificateORM",
    "CertificateSystemORM",
    "UserPermissionORM",
    "ActivityLogORM",
    "SecurityLogORM",
]
