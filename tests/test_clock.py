import time
from datetime import datetime, timedelta, timezone

from patienthub.core.clock import utc_from_timestamp, utcnow
from patienthub.core.security import create_access_token, verify_token


def test_utcnow_is_naive_utc():
    now = utcnow()
    assert now.tzinfo is None
    aware = datetime.now(timezone.utc).replace(tzinfo=None)
    assert abs(aware - now) < timedelta(seconds=5)


def test_utc_from_timestamp():
    assert utc_from_timestamp(0) == datetime(1970, 1, 1)
    assert utc_from_timestamp(86400.5) == datetime(1970, 1, 2, 0, 0, 0, 500000)


def test_access_token_expiry_is_relative_to_utc():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=10))
    payload = verify_token(token)

    assert payload is not None
    assert abs(payload.exp - (time.time() + 600)) < 5
    assert abs(utc_from_timestamp(payload.exp) - (utcnow() + timedelta(minutes=10))) < timedelta(seconds=5)
