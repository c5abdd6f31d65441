"""
Registration, login/logout, lockout and session handling over HTTP.
"""
from datetime import timedelta

import pytest
from sqlalchemy import select

from backend.app.core.clock import utcnow
from backend.app.core.config import get_settings
from backend.app.core.security import Role
from backend.app.models.audit_orm import ActivityLogORM, SecurityLogORM
from backend.app.models.session_orm import UserSessionORM
from backend.app.models.user_orm import UserORM
from tests.conftest import DEFAULT_PASSWORD, login

pytestmark = pytest.mark.integration

settings = get_settings()


async def _security_logs(db_session, user_id=None):
    stmt = select(SecurityLogORM).order_by(SecurityLogORM.timestamp)
    if user_id:
        stmt = stmt.where(SecurityLogORM.user_id == user_id)
    return (await db_session.execute(stmt)).scalars().all()


async def test_register_with_organization_makes_org_admin(client, db_session, event_bus):
    resp = await client.post("/api/register", json={
        "username": "ana",
        "email": "ana@acme.com",
        "name": "Ana",
        "password": DEFAULT_PASSWORD,
        "create_organization": True,
        "organization_name": "Acme Holdings",
        "organization_identifier": "11222333000181",
    })
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["created_organization"] is True
    assert body["user"]["role"] == "org_admin"
    assert body["organization"]["plan"] == "trial"
    assert body["user"]["organization_id"] == body["organization"]["id"]
    assert "hashed_password" not in body["user"]
    assert "password" not in body["user"]

    await event_bus.drain()
    logs = await _security_logs(db_session, body["user"]["id"])
    assert [log.event_type for log in logs] == ["registration"]


async def test_register_rejects_duplicates(client):
    payload = {"username": "bob", "email": "bob@example.com", "name": "Bob", "password": DEFAULT_PASSWORD}
    assert (await client.post("/api/register", json=payload)).status_code == 201

    again = await client.post("/api/register", json=payload)
    assert again.status_code == 400
    assert again.json()["message"] == "Username already exists"

    other = {**payload, "username": "bobby"}
    resp = await client.post("/api/register", json=other)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already in use"


async def test_register_requires_organization_fields(client):
    resp = await client.post("/api/register", json={
        "username": "carl", "email": "carl@example.com", "name": "Carl",
        "password": DEFAULT_PASSWORD, "create_organization": True,
    })
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid input"


async def test_login_sets_session_cookie_and_returns_context(client, seed):
    org = await seed.organization("Acme")
    user = await seed.user("dora", organization_id=org.id)
    company = await seed.company("Acme Filial", org.id)
    await seed.grant(user.id, company.id, view=True)

    resp = await login(client, "dora")
    assert resp.status_code == 200, resp.text
    cookie = resp.headers["set-cookie"]
    assert settings.session_cookie_name in cookie
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Max-Age=86400" in cookie

    body = resp.json()
    assert body["user"]["username"] == "dora"
    assert body["organization"]["id"] == org.id
    assert [c["id"] for c in body["companies"]] == [company.id]
    assert body["current_company_id"] == company.id
    assert body["requires_two_factor"] is False

    me = await client.get("/api/user")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == user.id


async def test_invalid_password_and_unknown_user_share_message(client, seed, db_session, event_bus):
    user = await seed.user("eve")

    wrong = await login(client, "eve", "Wrong!Pass1")
    missing = await login(client, "nobody", "Wrong!Pass1")
    assert wrong.status_code == missing.status_code == 401
    assert wrong.json()["message"] == missing.json()["message"] == "Invalid username or password"

    await event_bus.drain()
    logs = await _security_logs(db_session)
    reasons = [(log.user_id, log.details["reason"]) for log in logs]
    assert (user.id, "invalid_password") in reasons
    assert (None, "unknown_user") in reasons


async def test_inactive_account_is_rejected_with_reason(client, seed, db_session, event_bus):
    user = await seed.user("frank", status="inactive")

    resp = await login(client, "frank")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Account is inactive"

    await event_bus.drain()
    logs = await _security_logs(db_session, user.id)
    assert logs[-1].details == {"reason": "account_inactive"}
    assert logs[-1].status == "failure"


async def test_lockout_after_five_failures_even_with_correct_password(client, seed, db_session, event_bus):
    user = await seed.user("gina")

    for attempt in range(1, 6):
        resp = await login(client, "gina", "Wrong!Pass1")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid username or password"

    locked = await login(client, "gina", DEFAULT_PASSWORD)
    assert locked.status_code == 401
    assert locked.json()["message"] == "Account is locked. Try again in 15 minute(s)."

    await event_bus.drain()
    logs = await _security_logs(db_session, user.id)
    assert [log.details["attempts"] for log in logs if log.details["reason"] == "invalid_password"] == [1, 2, 3, 4, 5]
    assert logs[-1].details["reason"] == "account_locked"
    assert logs[-1].details["remaining_lock_time"] == 15


async def test_lockout_expires_after_window(client, seed, session_factory):
    user = await seed.user("hank")
    for _ in range(5):
        await login(client, "hank", "Wrong!Pass1")
    assert (await login(client, "hank")).status_code == 401

    async with session_factory() as db:
        row = await db.get(UserORM, user.id)
        row.last_failed_login_at = utcnow() - timedelta(minutes=settings.login_lockout_minutes, seconds=1)
        await db.commit()

    resp = await login(client, "hank")
    assert resp.status_code == 200, resp.text

    async with session_factory() as db:
        row = await db.get(UserORM, user.id)
        assert row.login_attempts == 0
        assert row.last_login_at is not None
        assert row.last_login_ip == "127.0.0.1"


async def test_successful_login_resets_failed_attempts(client, seed, session_factory):
    user = await seed.user("ivan")
    for _ in range(3):
        await login(client, "ivan", "Wrong!Pass1")
    assert (await login(client, "ivan")).status_code == 200

    async with session_factory() as db:
        assert (await db.get(UserORM, user.id)).login_attempts == 0


async def test_logout_logs_then_destroys_session(client, seed, db_session, event_bus):
    user = await seed.user("judy")
    assert (await login(client, "judy")).status_code == 200

    resp = await client.post("/api/logout")
    assert resp.status_code == 200
    assert (await client.get("/api/user")).status_code == 401

    await event_bus.drain()
    sessions = (await db_session.execute(
        select(UserSessionORM).where(UserSessionORM.user_id == user.id)
    )).scalars().all()
    assert sessions == []

    actions = (await db_session.execute(
        select(ActivityLogORM.action).where(ActivityLogORM.user_id == user.id)
    )).scalars().all()
    assert "logout" in actions


async def test_logout_without_session_is_harmless(client):
    resp = await client.post("/api/logout")
    assert resp.status_code == 200


async def test_requests_without_session_are_unauthorized(client):
    for path in ("/api/user", "/api/companies", "/api/certificates", "/api/dashboard/stats"):
        resp = await client.get(path)
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized"}


async def test_expired_session_is_rejected(client, seed, session_factory):
    user = await seed.user("kate")
    assert (await login(client, "kate")).status_code == 200

    async with session_factory() as db:
        session = (await db.execute(
            select(UserSessionORM).where(UserSessionORM.user_id == user.id)
        )).scalar_one()
        session.expires_at = utcnow() - timedelta(seconds=1)
        await db.commit()

    assert (await client.get("/api/user")).status_code == 401


async def test_deactivated_user_loses_existing_session(client, seed, session_factory):
    user = await seed.user("liam")
    assert (await login(client, "liam")).status_code == 200

    async with session_factory() as db:
        (await db.get(UserORM, user.id)).status = "inactive"
        await db.commit()

    assert (await client.get("/api/user")).status_code == 401


async def test_self_service_profile_and_password(client, seed, db_session, event_bus):
    org = await seed.organization("Acme")
    user = await seed.user("mona", organization_id=org.id)
    await login(client, "mona")

    resp = await client.patch("/api/user/profile", json={"name": "Mona Lisa", "email": "mona@acme.com"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Mona Lisa"

    weak = await client.post("/api/user/password", json={"current_password": DEFAULT_PASSWORD, "new_password": "weakpass"})
    assert weak.status_code == 400
    assert weak.json()["errors"]

    wrong = await client.post("/api/user/password", json={"current_password": "Nope!Nope1", "new_password": "N3w!Password"})
    assert wrong.status_code == 400

    ok = await client.post("/api/user/password", json={"current_password": DEFAULT_PASSWORD, "new_password": "N3w!Password"})
    assert ok.status_code == 200

    await client.post("/api/logout")
    assert (await login(client, "mona", DEFAULT_PASSWORD)).status_code == 401
    assert (await login(client, "mona", "N3w!Password")).status_code == 200

    await event_bus.drain()
    logs = await _security_logs(db_session, user.id)
    changes = [log.status for log in logs if log.event_type == "password_changed"]
    assert changes == ["failure", "success"]


async def test_seeded_role_is_reported(client, seed):
    await seed.user("root", role=Role.SYSTEM_ADMIN)
    resp = await login(client, "root")
    assert resp.json()["user"]["role"] == "system_admin"
    assert resp.json()["organization"] is None
