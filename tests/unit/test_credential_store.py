"""
Unit tests for scrypt password hashing.
"""
import re

from backend.app.services.auth_service import hash_password, verify_password


def test_hash_format_is_hex_key_dot_hex_salt():
    stored = hash_password("s3cret-Pass")
    key_hex, salt = stored.split(".")
    assert re.fullmatch(r"[0-9a-f]{128}", key_hex)
    assert re.fullmatch(r"[0-9a-f]{32}", salt)


def test_verify_accepts_the_original_password():
    stored = hash_password("correct horse battery staple")
    assert verify_password("correct horse battery staple", stored) is True


def test_verify_rejects_a_different_password():
    stored = hash_password("password-one")
    assert verify_password("password-two", stored) is False


def test_same_password_gets_a_fresh_salt_each_time():
    assert hash_password("repeat") != hash_password("repeat")


def test_verify_never_raises_on_malformed_hashes():
    for stored in ("", "no-delimiter", "zz.abcd", ".abcd", "abcd.", None):
        assert verify_password("anything", stored) is False


def test_unicode_passwords_round_trip():
    stored = hash_password("senha-çãõ-🔐")
    assert verify_password("senha-çãõ-🔐", stored) is True
    assert verify_password("senha-cao-🔐", stored) is False
