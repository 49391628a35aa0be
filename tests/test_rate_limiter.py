from unittest.mock import MagicMock

import pytest

from visitingvet import rate_limiter


@pytest.fixture(autouse=True)
def clear_windows():
    rate_limiter._windows.clear()
    yield
    rate_limiter._windows.clear()


def test_counts_until_limit():
    results = [rate_limiter.check_rate_limit("login:1.2.3.4", 3, 60) for _ in range(4)]
    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_keys_are_independent():
    rate_limiter.check_rate_limit("login:a", 1, 60)
    assert rate_limiter.check_rate_limit("login:a", 1, 60)[0] is False
    assert rate_limiter.check_rate_limit("login:b", 1, 60)[0] is True


def test_expired_window_resets():
    rate_limiter.check_rate_limit("mfa:x", 1, 60)
    rate_limiter._windows["mfa:x"].resets_at = 0
    assert rate_limiter.check_rate_limit("mfa:x", 1, 60) == (True, 1, 60)


def test_window_is_seeded_from_redis():
    store = MagicMock()
    store.get.return_value = "5"
    store.ttl.return_value = 30
    allowed, used, retry_after = rate_limiter.check_rate_limit("register:ip", 5, 3600, store)
    assert (allowed, used, retry_after) == (False, 5, 30)
