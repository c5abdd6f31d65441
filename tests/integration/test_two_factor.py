"""
TOTP enrollment and the second-factor gate on password reveals.
"""
from datetime import timedelta

import pyotp
import pytest
from sqlalchemy import select

from backend.app.core.clock import utcnow
from backend.app.core.security import Role
from backend.app.models.audit_orm import SecurityLogORM
from backend.app.models.user_orm import UserORM
from tests.conftest import login

pytestmark = pytest.mark.integration


def _wrong_code(secret):
    """A six-digit code outside the accepted TOTP window."""
    totp = pyotp.TOTP(secret)
    candidate = int(totp.now())
    while True:
        candidate = (candidate + 1) % 1_000_000
        code = f"{candidate:06d}"
        if not totp.verify(code, valid_window=1):
            return code


def _certificate(company_id):
    now = utcnow()
    return {
        "company_id": company_id,
        "name": "e-CNPJ",
        "entity": "Acme Ltda",
        "identifier": "12345678000190",
        "type": "A3",
        "issued_date": (now - timedelta(days=30)).isoformat(),
        "expiration_date": (now + timedelta(days=300)).isoformat(),
        "password": "t0k3n-pin",
    }


@pytest.fixture
async def tenant(seed):
    org = await seed.organization("Secure Org")
    company = await seed.company("Secure Co", org.id)
    return {"org": org, "company": company}


async def test_admin_must_enroll_before_revealing(tenant, seed, login_as, session_factory):
    await seed.user("admin1", role=Role.ORG_ADMIN, organization_id=tenant["org"].id)
    client = await login_as("admin1")
    assert (await client.get("/api/user")).json()["requires_two_factor"] is True

    cert = (await client.post("/api/certificates", json=_certificate(tenant["company"].id))).json()
    gated = await client.get(f"/api/certificates/{cert['id']}/password")
    assert gated.status_code == 403
    assert gated.json()["requires_two_factor"] is True

    setup = await client.post("/api/2fa/setup")
    assert setup.status_code == 200
    secret = setup.json()["secret"]
    assert setup.json()["provisioning_uri"].startswith("otpauth://totp/")
    assert "issuer=CertGuard" in setup.json()["provisioning_uri"]

    bad = await client.post("/api/2fa/enable", json={"code": _wrong_code(secret)})
    assert bad.status_code == 400

    enabled = await client.post("/api/2fa/enable", json={"code": pyotp.TOTP(secret).now()})
    assert enabled.status_code == 200
    assert enabled.json()["two_factor_enabled"] is True

    revealed = await client.get(f"/api/certificates/{cert['id']}/password")
    assert revealed.status_code == 200
    assert revealed.json()["password"] == "t0k3n-pin"

    async with session_factory() as db:
        user = (await db.execute(select(UserORM).where(UserORM.username == "admin1"))).scalar_one()
        assert user.two_factor_enabled is True
        assert user.two_factor_secret == secret


async def test_enrolled_user_verifies_each_session(tenant, seed, client_factory, db_session, event_bus):
    secret = pyotp.random_base32()
    user = await seed.user("otpuser", organization_id=tenant["org"].id, two_factor_secret=secret)
    await seed.grant(user.id, tenant["company"].id, view=True, edit=True, view_password=True)

    client = client_factory()
    resp = await login(client, "otpuser")
    assert resp.status_code == 200
    assert resp.json()["requires_two_factor"] is True

    cert = (await client.post("/api/certificates", json=_certificate(tenant["company"].id))).json()
    assert (await client.get(f"/api/certificates/{cert['id']}")).status_code == 200
    assert (await client.get(f"/api/certificates/{cert['id']}/password")).status_code == 403

    wrong = await client.post("/api/verify-2fa", json={"code": _wrong_code(secret)})
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Invalid 2FA code"

    ok = await client.post("/api/verify-2fa", json={"code": pyotp.TOTP(secret).now()})
    assert ok.status_code == 200
    assert (await client.get("/api/user")).json()["requires_two_factor"] is False
    assert (await client.get(f"/api/certificates/{cert['id']}/password")).status_code == 200

    # A new session starts unverified again
    second = client_factory()
    await login(second, "otpuser")
    assert (await second.get(f"/api/certificates/{cert['id']}/password")).status_code == 403

    await event_bus.drain()
    result = await db_session.execute(
        select(SecurityLogORM.status)
        .where(SecurityLogORM.user_id == user.id, SecurityLogORM.event_type == "2fa_verification")
        .order_by(SecurityLogORM.timestamp)
    )
    assert result.scalars().all() == ["failure", "success"]


async def test_verify_without_secret_is_rejected(tenant, seed, login_as):
    await seed.user("plain", organization_id=tenant["org"].id)
    client = await login_as("plain")
    resp = await client.post("/api/verify-2fa", json={"code": "123456"})
    assert resp.status_code == 400


async def test_plain_user_reveals_without_second_factor(tenant, seed, login_as):
    user = await seed.user("nofactor", organization_id=tenant["org"].id)
    await seed.grant(user.id, tenant["company"].id, view=True, edit=True, view_password=True)
    client = await login_as("nofactor")

    cert = (await client.post("/api/certificates", json=_certificate(tenant["company"].id))).json()
    assert (await client.get(f"/api/certificates/{cert['id']}/password")).status_code == 200


async def test_organization_policy_can_require_everyone(seed, login_as):
    org = await seed.organization("Strict", two_factor_policy={"required": True})
    company = await seed.company("Strict Co", org.id)
    user = await seed.user("strict", organization_id=org.id)
    await seed.grant(user.id, company.id, view=True, edit=True, view_password=True)

    client = await login_as("strict")
    cert = (await client.post("/api/certificates", json=_certificate(company.id))).json()
    resp = await client.get(f"/api/certificates/{cert['id']}/password")
    assert resp.status_code == 403
    assert resp.json() == {"message": "Two-factor authentication required", "requires_two_factor": True}


async def test_missing_grant_wins_over_two_factor_gate(tenant, seed, login_as):
    owner = await seed.user("owner", organization_id=tenant["org"].id)
    await seed.grant(owner.id, tenant["company"].id, view=True, edit=True, view_password=True)
    writer = await login_as("owner")
    cert = (await writer.post("/api/certificates", json=_certificate(tenant["company"].id))).json()

    await seed.user("outsider", organization_id=tenant["org"].id, two_factor_secret=pyotp.random_base32())
    outsider = await login_as("outsider")
    resp = await outsider.get(f"/api/certificates/{cert['id']}/password")
    assert resp.status_code == 403
    assert "requires_two_factor" not in resp.json()


async def test_disable_requires_valid_code(tenant, seed, login_as, session_factory):
    secret = pyotp.random_base32()
    user = await seed.user("leaving", organization_id=tenant["org"].id, two_factor_secret=secret)
    client = await login_as("leaving")

    assert (await client.post("/api/2fa/setup")).status_code == 400
    assert (await client.post("/api/2fa/disable", json={"code": "abcdef"})).status_code == 400

    resp = await client.post("/api/2fa/disable", json={"code": pyotp.TOTP(secret).now()})
    assert resp.status_code == 200

    async with session_factory() as db:
        row = await db.get(UserORM, user.id)
        assert row.two_factor_enabled is False
        assert row.two_factor_secret is None
