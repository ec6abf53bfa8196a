"""
Rate Limit Repository Implementation
===================================

In-process fixed-window rate limiting keyed by Messenger user id.

Each user owns one window. The first request, or the first request after
the window's reset time has passed, opens a fresh window with a count of
one. Within a window the count is incremented and the request is allowed
while it stays within the limit. Requests straddling a window boundary can
therefore reach up to twice the nominal rate.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import structlog

from src.models.conversation import utc_now
from src.models.types import UserId


@dataclass
class RateLimitConfig:
    """Rate limit configuration"""
    limit: int  # Number of requests allowed per window
    window_seconds: int  # Window length in seconds

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError("Rate limit must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("Rate limit window must be positive")

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


@dataclass
class RateWindow:
    """Request count of one user within the current window"""
    count: int
    window_reset_at: datetime


@dataclass
class RateLimitResult:
    """Result of a rate limit check"""
    allowed: bool
    current_count: int
    limit: int
    remaining: int
    reset_time: int  # Unix timestamp
    retry_after_seconds: Optional[int] = None

    def to_headers(self) -> Dict[str, str]:
        """Convert to HTTP headers"""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time)
        }

        if self.retry_after_seconds:
            headers["Retry-After"] = str(self.retry_after_seconds)

        return headers


class RateLimitRepository:
    """Fixed-window request counters per user"""

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._windows: Dict[UserId, RateWindow] = {}
        self.logger = structlog.get_logger("RateLimitRepository")

    def check_rate_limit(self, user_id: UserId, now: Optional[datetime] = None) -> RateLimitResult:
        """
        Count a request and decide whether it is allowed

        Args:
            user_id: Messenger sender id
            now: Current time (defaults to the wall clock)

        Returns:
            RateLimitResult with decision and metadata
        """
        now = now or utc_now()
        window = self._windows.get(user_id)

        if window is None or now > window.window_reset_at:
            window = RateWindow(count=1, window_reset_at=now + self.config.window)
            self._windows[user_id] = window
        else:
            window.count += 1

        allowed = window.count <= self.config.limit
        retry_after = None
        if not allowed:
            retry_after = max(1, math.ceil((window.window_reset_at - now).total_seconds()))
            self.logger.warning(
                "Rate limit exceeded",
                user_id=user_id,
                current_count=window.count,
                limit=self.config.limit,
                retry_after_seconds=retry_after
            )

        return RateLimitResult(
            allowed=allowed,
            current_count=window.count,
            limit=self.config.limit,
            remaining=max(0, self.config.limit - window.count),
            reset_time=int(window.window_reset_at.timestamp()),
            retry_after_seconds=retry_after
        )

    def allow(self, user_id: UserId, now: Optional[datetime] = None) -> bool:
        """Whether the request from ``user_id`` at ``now`` is allowed"""
        return self.check_rate_limit(user_id, now).allowed

    def get_window(self, user_id: UserId) -> Optional[RateWindow]:
        return self._windows.get(user_id)

    def reset(self, user_id: UserId) -> None:
        self._windows.pop(user_id, None)

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Forget windows whose reset time has passed

        Returns:
            Number of windows removed
        """
        now = now or utc_now()
        expired = [
            user_id for user_id, window in self._windows.items()
            if now > window.window_reset_at
        ]
        for user_id in expired:
            del self._windows[user_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
