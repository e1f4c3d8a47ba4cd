"""
Rate limiting.

Login uses a SlowAPI fixed-window limiter keyed by client IP. OTP-issuing
endpoints are keyed by the submitted email (falling back to the client IP),
which SlowAPI's synchronous key functions cannot see, so they use a `limits`
fixed-window limiter directly. Both are in-memory (single instance).
"""
import logging
import math
import time
from typing import Optional

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from core.config import settings

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Get client IP, respecting X-Forwarded-For for proxied requests.
    Falls back to direct IP if header not present.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded: {get_client_ip(request)} on {request.url.path}")
    return JSONResponse(status_code=429, content={"error": exc.detail})


class KeyedWindowLimiter:
    """Fixed-window limiter for an arbitrary caller key (email or IP)."""

    def __init__(self, namespace: str, limit: str, enabled: bool = True):
        self.namespace = namespace
        self.item = parse(limit)
        self.enabled = enabled
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def hit(self, key: str) -> Optional[int]:
        """Consume one slot; returns None when allowed, else seconds until the window resets."""
        if not self.enabled:
            return None
        if self._strategy.hit(self.item, self.namespace, key):
            return None
        reset_time, _ = self._strategy.get_window_stats(self.item, self.namespace, key)
        return max(1, math.ceil(reset_time - time.time()))

    def reset(self) -> None:
        self._storage.reset()


otp_request_limiter = KeyedWindowLimiter(
    "otp-request",
    settings.OTP_RATE_LIMIT,
    enabled=settings.RATE_LIMIT_ENABLED,
)
