"""
Organizations (tenants) and their policy settings.
"""
import copy
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import BadRequestError, NotFoundError
from backend.app.models.tenant_orm import (
    DEFAULT_NOTIFICATION_SETTINGS,
    DEFAULT_PASSWORD_POLICY,
    DEFAULT_SESSION_POLICY,
    DEFAULT_TWO_FACTOR_POLICY,
    OrganizationORM,
    OrganizationSettingsORM,
)

logger = logging.getLogger(__name__)

SETTINGS_SECTIONS = ("password_policy", "two_factor_policy", "session_policy", "notification_settings")


async def get_organization(db: AsyncSession, organization_id: Optional[str]) -> Optional[OrganizationORM]:
    if not organization_id:
        return None
    return await db.get(OrganizationORM, organization_id)


async def list_organizations(db: AsyncSession) -> List[OrganizationORM]:
    result = await db.execute(select(OrganizationORM).order_by(OrganizationORM.name))
    return list(result.scalars().all())


async def create_organization(
    db: AsyncSession,
    *,
    name: str,
    identifier: str,
    domain: Optional[str] = None,
    plan: str = "basic",
) -> OrganizationORM:
    """Create a tenant together with its default settings row."""
    existing = await db.execute(select(OrganizationORM).where(OrganizationORM.identifier == identifier))
    if existing.scalar_one_or_none():
        raise BadRequestError("Organization identifier already registered")

    org = OrganizationORM(name=name, identifier=identifier, domain=domain, plan=plan, status="active")
    db.add(org)
    await db.flush()

    db.add(OrganizationSettingsORM(
        organization_id=org.id,
        password_policy=copy.deepcopy(DEFAULT_PASSWORD_POLICY),
        two_factor_policy=copy.deepcopy(DEFAULT_TWO_FACTOR_POLICY),
        session_policy=copy.deepcopy(DEFAULT_SESSION_POLICY),
        notification_settings=copy.deepcopy(DEFAULT_NOTIFICATION_SETTINGS),
    ))
    await db.flush()
    logger.info(f"Organization created: {org.name} ({org.id})")
    return org


async def get_organization_settings(db: AsyncSession, organization_id: Optional[str]) -> Optional[OrganizationSettingsORM]:
    if not organization_id:
        return None
    result = await db.execute(
        select(OrganizationSettingsORM).where(OrganizationSettingsORM.organization_id == organization_id)
    )
    return result.scalar_one_or_none()


async def update_organization_settings(
    db: AsyncSession, organization_id: str, changes: Dict[str, Dict[str, Any]]
) -> OrganizationSettingsORM:
    """
    Merge partial policy updates into the stored blobs.

    Keys inside each section are merged, so a PATCH of one flag keeps the rest.
    """
    org_settings = await get_organization_settings(db, organization_id)
    if org_settings is None:
        if await get_organization(db, organization_id) is None:
            raise NotFoundError("Organization not found")
        org_settings = OrganizationSettingsORM(organization_id=organization_id)
        db.add(org_settings)
        await db.flush()

    for section in SETTINGS_SECTIONS:
        patch = changes.get(section)
        if patch is None:
            continue
        merged = dict(getattr(org_settings, section) or {})
        merged.update(patch)
        # New dict object so SQLAlchemy sees the JSON column as dirty
        setattr(org_settings, section, merged)

    await db.flush()
    return org_settings


async def get_password_policy(db: AsyncSession, organization_id: Optional[str]) -> Optional[Dict[str, Any]]:
    org_settings = await get_organization_settings(db, organization_id)
    return org_settings.password_policy if org_settings else None
