"""Per-client request limiting for the /api routers."""

import logging
import math
import time
from datetime import datetime, timezone

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from dwiju.core.config import settings
from dwiju.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


class RequestRateLimiter:
    """``max_requests`` per ``window_seconds`` for each client address, held in process memory."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    @property
    def max_requests(self) -> int:
        return self.item.amount

    def check(self, key: str) -> None:
        if self.strategy.hit(self.item, "api", key):
            return

        reset_time, remaining = self.strategy.get_window_stats(self.item, "api", key)
        retry_after = max(1, math.ceil(reset_time - time.time()))
        logger.warning(f"Rate limit exceeded for {key}, retry in {retry_after}s")
        raise RateLimitExceededError(
            retry_after=retry_after,
            limit=self.max_requests,
            remaining=max(0, remaining),
            reset_at=datetime.fromtimestamp(reset_time, timezone.utc),
        )

    def reset(self) -> None:
        self.storage.reset()


request_limiter = RequestRateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)


def rate_limit(request: Request) -> None:
    """Router dependency. Clients are keyed by their remote address."""
    key = request.client.host if request.client else "unknown"
    request_limiter.check(key)
