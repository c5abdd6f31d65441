from datetime import datetime, timedelta, timezone

from jose import jwt

from backend.app.core.config import get_settings
from backend.app.core.security import read_session_id, sign_session_id


def test_round_trip():
    assert read_session_id(sign_session_id("abc123")) == "abc123"


def test_tampered_token_is_rejected():
    token = sign_session_id("abc123")
    forged = jwt.encode({"sid": "someone-else"}, "not-the-secret", algorithm="HS256")
    assert read_session_id(forged) is None
    header, payload, signature = token.split(".")
    assert read_session_id(".".join([header, payload[::-1], signature])) is None
    assert read_session_id("garbage") is None


def test_expired_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    assert read_session_id(sign_session_id("abc123", past)) is None


def test_payload_without_sid_is_rejected():
    settings = get_settings()
    token = jwt.encode({"user": "x"}, settings.session_secret, algorithm=settings.session_algorithm)
    assert read_session_id(token) is None
