"""
Role predicates and the two-factor requirement rules.
"""
from types import SimpleNamespace

import pyotp
import pytest

from backend.app.core.security import Role
from backend.app.services.two_factor import (
    generate_secret,
    provisioning_uri,
    two_factor_required,
    verify_code,
)


def _user(role="user", two_factor_enabled=False):
    return SimpleNamespace(role=role, two_factor_enabled=two_factor_enabled)


def _settings(**policy):
    return SimpleNamespace(two_factor_policy=policy)


def test_admin_privileges():
    assert Role.SYSTEM_ADMIN.has_admin_privileges()
    assert Role.ORG_ADMIN.has_admin_privileges()
    assert not Role.USER.has_admin_privileges()


def test_unknown_role_strings_fall_back_to_user():
    assert Role.of("admin") is Role.USER
    assert Role.of(None) is Role.USER
    assert Role.of("org_admin") is Role.ORG_ADMIN


@pytest.mark.parametrize("user, org_settings, expected", [
    (_user(two_factor_enabled=True), None, True),
    (_user(), None, False),
    (_user(), _settings(required=True), True),
    (_user(), _settings(required=False, required_for_admins=True), False),
    (_user(role="org_admin"), _settings(required=False, required_for_admins=True), True),
    (_user(role="org_admin"), _settings(required=False, required_for_admins=False), False),
    (_user(role="system_admin"), _settings(required_for_admins=True), True),
])
def test_two_factor_required(user, org_settings, expected):
    assert two_factor_required(user, org_settings) is expected


def test_verify_code_accepts_current_totp():
    secret = generate_secret()
    assert verify_code(secret, pyotp.TOTP(secret).now())


def test_verify_code_rejects_wrong_or_missing_input():
    secret = generate_secret()
    current = pyotp.TOTP(secret).now()
    wrong = f"{(int(current) + 500000) % 1000000:06d}"
    assert not verify_code(secret, wrong)
    assert not verify_code(secret, "abcdef")
    assert not verify_code(None, current)
    assert not verify_code(secret, "")


def test_provisioning_uri_names_issuer_and_account():
    uri = provisioning_uri(generate_secret(), "ana@example.com")
    assert uri.startswith("otpauth://totp/")
    assert "issuer=CertGuard" in uri
    assert "ana%40example.com" in uri
