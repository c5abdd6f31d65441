"""
Certificate status is a pure function of expiration date and "now".
"""
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.schemas.certificates import CertificateStatus
from backend.app.services.certificate_service import certificate_status, days_until_expiration

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("offset_days, expected", [
    (-1, CertificateStatus.EXPIRED),
    (0, CertificateStatus.EXPIRED),
    (1, CertificateStatus.EXPIRING),
    (10, CertificateStatus.EXPIRING),
    (30, CertificateStatus.EXPIRING),
    (31, CertificateStatus.VALID),
    (60, CertificateStatus.VALID),
])
def test_status_thresholds(offset_days, expected):
    assert certificate_status(NOW + timedelta(days=offset_days), NOW) == expected


def test_partial_days_round_up():
    assert days_until_expiration(NOW + timedelta(hours=1), NOW) == 1
    assert days_until_expiration(NOW + timedelta(days=30, seconds=1), NOW) == 31
    assert certificate_status(NOW + timedelta(days=30, seconds=1), NOW) == CertificateStatus.VALID


def test_naive_datetimes_are_treated_as_utc():
    naive = (NOW + timedelta(days=5)).replace(tzinfo=None)
    assert days_until_expiration(naive, NOW) == 5


def test_status_changes_as_time_passes():
    expiration = NOW + timedelta(days=45)
    assert certificate_status(expiration, NOW) == CertificateStatus.VALID
    assert certificate_status(expiration, NOW + timedelta(days=20)) == CertificateStatus.EXPIRING
    assert certificate_status(expiration, NOW + timedelta(days=46)) == CertificateStatus.EXPIRED


def test_custom_threshold():
    assert certificate_status(NOW + timedelta(days=10), NOW, threshold_days=7) == CertificateStatus.VALID
