from backend.app.models.tenant_orm import DEFAULT_PASSWORD_POLICY
from backend.app.services.auth_service import validate_password_policy


def test_strong_password_passes_default_policy():
    assert validate_password_policy("Str0ng!Pass", DEFAULT_PASSWORD_POLICY) == []


def test_each_rule_reports_its_own_problem():
    problems = validate_password_policy("short", DEFAULT_PASSWORD_POLICY)
    assert any("at least 8" in p for p in problems)
    assert any("uppercase" in p for p in problems)
    assert any("number" in p for p in problems)
    assert any("special" in p for p in problems)
    assert not any("lowercase" in p for p in problems)


def test_missing_policy_accepts_anything():
    assert validate_password_policy("a", None) == []
    assert validate_password_policy("a", {}) == []
