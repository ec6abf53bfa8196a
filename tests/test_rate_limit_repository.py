from datetime import timedelta

import pytest

from src.repositories.rate_limit_repository import RateLimitConfig, RateLimitRepository

from tests.conftest import NOW, OTHER_USER_ID, USER_ID


@pytest.fixture
def limiter():
    return RateLimitRepository(RateLimitConfig(limit=3, window_seconds=60))


def test_allows_up_to_limit_then_blocks(limiter):
    decisions = [limiter.allow(USER_ID, NOW + timedelta(seconds=i)) for i in range(4)]
    assert decisions == [True, True, True, False]


def test_users_are_counted_separately(limiter):
    for _ in range(3):
        limiter.allow(USER_ID, NOW)

    assert limiter.allow(USER_ID, NOW) is False
    assert limiter.allow(OTHER_USER_ID, NOW) is True


def test_window_resets_only_after_reset_time(limiter):
    for _ in range(4):
        limiter.allow(USER_ID, NOW)

    assert limiter.allow(USER_ID, NOW + timedelta(seconds=60)) is False
    assert limiter.allow(USER_ID, NOW + timedelta(seconds=61)) is True
    assert limiter.get_window(USER_ID).count == 1


def test_blocked_result_carries_retry_after(limiter):
    for _ in range(3):
        limiter.check_rate_limit(USER_ID, NOW)

    result = limiter.check_rate_limit(USER_ID, NOW + timedelta(seconds=15))

    assert result.allowed is False
    assert result.remaining == 0
    assert result.retry_after_seconds == 45
    assert result.to_headers()["Retry-After"] == "45"


def test_cleanup_removes_expired_windows(limiter):
    limiter.allow(USER_ID, NOW)
    limiter.allow(OTHER_USER_ID, NOW + timedelta(seconds=30))

    assert limiter.cleanup(NOW + timedelta(seconds=61)) == 1
    assert len(limiter) == 1
    assert limiter.get_window(USER_ID) is None


def test_reset_forgets_window(limiter):
    for _ in range(4):
        limiter.allow(USER_ID, NOW)
    limiter.reset(USER_ID)

    assert limiter.allow(USER_ID, NOW) is True


@pytest.mark.parametrize("limit,window", [(0, 60), (1, 0)])
def test_invalid_config(limit, window):
    with pytest.raises(ValueError):
        RateLimitConfig(limit=limit, window_seconds=window)
