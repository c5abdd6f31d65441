"""
Audit log queries, dashboard counts, admin aggregates and organization settings.
"""
from datetime import timedelta

import pytest

from backend.app.core.clock import utcnow
from backend.app.core.security import Role

pytestmark = pytest.mark.integration


def _certificate(company_id, name, days, cert_type="A1"):
    now = utcnow()
    return {
        "company_id": company_id,
        "name": name,
        "entity": "Holder",
        "identifier": "44555666000177",
        "type": cert_type,
        "issued_date": (now - timedelta(days=400)).isoformat(),
        "expiration_date": (now + timedelta(days=days)).isoformat(),
        "password": "hidden",
    }


@pytest.fixture
async def landscape(seed, login_as):
    """Two organizations, each with an org_admin and some certificates."""
    alpha = await seed.organization("Alpha")
    beta = await seed.organization("Beta")
    alpha_co = await seed.company("Alpha Co", alpha.id)
    beta_co = await seed.company("Beta Co", beta.id)
    await seed.user("alpha_admin", role=Role.ORG_ADMIN, organization_id=alpha.id)
    await seed.user("beta_admin", role=Role.ORG_ADMIN, organization_id=beta.id)
    await seed.user("operator", role=Role.SYSTEM_ADMIN)

    alpha_client = await login_as("alpha_admin")
    beta_client = await login_as("beta_admin")
    for name, days, cert_type in (("a-valid", 120, "A1"), ("a-soon", 7, "A3"), ("a-gone", -2, "A1")):
        resp = await alpha_client.post("/api/certificates", json=_certificate(alpha_co.id, name, days, cert_type))
        assert resp.status_code == 201, resp.text
    resp = await beta_client.post("/api/certificates", json=_certificate(beta_co.id, "b-valid", 90))
    assert resp.status_code == 201

    return {
        "alpha": alpha, "beta": beta, "alpha_co": alpha_co, "beta_co": beta_co,
        "alpha_client": alpha_client, "beta_client": beta_client,
    }


async def test_activity_logs_newest_first_and_scoped(landscape, event_bus):
    await event_bus.drain()
    resp = await landscape["alpha_client"].get("/api/logs", params={"entity": "certificate"})
    assert resp.status_code == 200
    logs = resp.json()
    assert [log["details"]["name"] for log in logs] == ["a-gone", "a-soon", "a-valid"]
    assert all(log["organization_id"] == landscape["alpha"].id for log in logs)


async def test_org_admin_cannot_widen_organization_filter(landscape, event_bus):
    await event_bus.drain()
    resp = await landscape["alpha_client"].get("/api/logs", params={"organization_id": landscape["beta"].id})
    assert resp.status_code == 200
    assert all(log["organization_id"] == landscape["alpha"].id for log in resp.json())

    security = await landscape["alpha_client"].get(
        "/api/security-logs", params={"organization_id": landscape["beta"].id}
    )
    assert all(log["organization_id"] == landscape["alpha"].id for log in security.json())


async def test_system_admin_reads_any_organization(landscape, login_as, event_bus):
    root = await login_as("operator")
    await event_bus.drain()

    resp = await root.get("/api/logs", params={"organization_id": landscape["beta"].id, "entity": "certificate"})
    assert [log["details"]["name"] for log in resp.json()] == ["b-valid"]

    logins = await root.get("/api/security-logs", params={"event_type": "login", "status": "success"})
    assert len(logins.json()) >= 3


async def test_log_limit_and_date_filters(landscape, event_bus):
    await event_bus.drain()
    client = landscape["alpha_client"]

    limited = await client.get("/api/logs", params={"limit": 2})
    assert len(limited.json()) == 2

    future = (utcnow() + timedelta(days=1)).isoformat()
    assert (await client.get("/api/logs", params={"date_from": future})).json() == []

    too_many = await client.get("/api/logs", params={"limit": 5000})
    assert too_many.status_code == 400


async def test_plain_user_cannot_read_logs(seed, login_as):
    org = await seed.organization("Quiet")
    await seed.user("reader", organization_id=org.id)
    client = await login_as("reader")

    assert (await client.get("/api/logs")).status_code == 403
    assert (await client.get("/api/security-logs")).status_code == 403


async def test_dashboard_counts_only_visible_certificates(landscape, seed, login_as):
    stats = (await landscape["alpha_client"].get("/api/dashboard/stats")).json()
    assert stats["total"] == 3
    assert (stats["valid"], stats["expiring"], stats["expired"]) == (1, 1, 1)
    assert (stats["a1"], stats["a3"]) == (2, 1)
    assert [item["name"] for item in stats["upcoming"]] == ["a-soon", "a-valid"]

    user = await seed.user("alpha_viewer", organization_id=landscape["alpha"].id)
    viewer = await login_as("alpha_viewer")
    assert (await viewer.get("/api/dashboard/stats")).json()["total"] == 0

    await seed.grant(user.id, landscape["alpha_co"].id, view=True)
    assert (await viewer.get("/api/dashboard/stats")).json()["total"] == 3


async def test_admin_aggregates_require_system_admin(landscape, login_as):
    for path in ("/api/admin/organizations", "/api/admin/users/stats", "/api/admin/certificates/stats"):
        assert (await landscape["alpha_client"].get(path)).status_code == 403

    root = await login_as("operator")

    overview = {o["name"]: o for o in (await root.get("/api/admin/organizations")).json()}
    assert overview["Alpha"]["companies"] == 1
    assert overview["Alpha"]["certificates"] == 3
    assert overview["Alpha"]["users"] == 1
    assert overview["Beta"]["certificates"] == 1

    users = (await root.get("/api/admin/users/stats")).json()
    assert users["total"] == 3
    assert users["active"] == 3
    assert users["by_role"] == {"org_admin": 2, "system_admin": 1}
    assert {entry["username"] for entry in users["recent_logins"]} == {"alpha_admin", "beta_admin", "operator"}

    certs = (await root.get("/api/admin/certificates/stats")).json()
    assert certs["total"] == 4
    assert (certs["valid"], certs["expiring"], certs["expired"]) == (2, 1, 1)
    assert certs["by_type"] == {"A1": 3, "A3": 1}


async def test_organization_endpoints(landscape, seed, login_as):
    root = await login_as("operator")

    listed = await root.get("/api/organizations")
    assert {o["name"] for o in listed.json()} == {"Alpha", "Beta"}
    assert (await landscape["alpha_client"].get("/api/organizations")).status_code == 403

    created = await root.post("/api/organizations", json={"name": "Gamma", "identifier": "55666777000188", "plan": "premium"})
    assert created.status_code == 201
    assert created.json()["plan"] == "premium"

    duplicate = await root.post("/api/organizations", json={"name": "Gamma 2", "identifier": "55666777000188"})
    assert duplicate.status_code == 400

    mine = await landscape["alpha_client"].get("/api/my-organization")
    assert mine.json()["id"] == landscape["alpha"].id


async def test_initial_setup_promotes_caller(seed, login_as):
    await seed.user("newcomer")
    client = await login_as("newcomer")
    assert (await client.get("/api/my-organization")).status_code == 404

    refused = await client.post("/api/organizations", json={"name": "Mine", "identifier": "66777888000199"})
    assert refused.status_code == 403

    resp = await client.post("/api/organizations", json={
        "name": "Mine", "identifier": "66777888000199", "initial_setup": True,
    })
    assert resp.status_code == 201
    me = (await client.get("/api/user")).json()
    assert me["user"]["role"] == "org_admin"
    assert me["organization"]["id"] == resp.json()["id"]

    again = await client.post("/api/organizations", json={
        "name": "Second", "identifier": "77888999000100", "initial_setup": True,
    })
    assert again.status_code == 403


async def test_organization_settings_merge(landscape, seed, login_as):
    client = landscape["alpha_client"]

    current = (await client.get("/api/organization-settings")).json()
    assert current["password_policy"]["min_length"] == 8
    assert current["two_factor_policy"]["required_for_admins"] is True

    patched = await client.patch("/api/organization-settings", json={"password_policy": {"min_length": 12}})
    assert patched.status_code == 200
    policy = patched.json()["password_policy"]
    assert policy["min_length"] == 12
    assert policy["require_uppercase"] is True

    # Other tenants are untouched
    beta = (await landscape["beta_client"].get("/api/organization-settings")).json()
    assert beta["password_policy"]["min_length"] == 8

    await seed.user("alpha_user", organization_id=landscape["alpha"].id)
    plain = await login_as("alpha_user")
    assert (await plain.get("/api/organization-settings")).status_code == 200
    assert (await plain.patch("/api/organization-settings", json={"session_policy": {}})).status_code == 403

    short = await client.post("/api/users", json={
        "username": "shorty", "email": "shorty@alpha.com", "name": "Shorty", "password": "Sh0rt!Pass",
    })
    assert short.status_code == 400
