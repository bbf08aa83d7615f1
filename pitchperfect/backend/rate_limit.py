import logging
import math
import os
import time
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from limits import RateLimitItem, parse_many
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter


logger = logging.getLogger("uvicorn.error")

# Several windows per bucket are separated by ";" and must all pass.
DEFAULT_LIMITS = {
    "auth": "5/15 minutes",
    "pitch": "10/hour",
    "chat": "20/minute;500/hour",
}
LIMIT_ENV_VARS = {
    "auth": "AUTH_RATE_LIMIT",
    "pitch": "PITCH_RATE_LIMIT",
    "chat": "CHAT_RATE_LIMIT",
}
MESSAGES = {
    "auth": "Too many authentication attempts, please try again later.",
    "pitch": "Too many pitch submissions, please try again later.",
    "chat": "Rate limit exceeded. Slow down.",
}


class RateLimiter:
    """Moving-window limits per bucket (auth, pitch, chat) keyed by caller."""

    def __init__(self, limits: Optional[Dict[str, str]] = None, enabled: bool = True) -> None:
        self.enabled = enabled
        self._items: Dict[str, List[RateLimitItem]] = {
            bucket: parse_many(value) for bucket, value in {**DEFAULT_LIMITS, **(limits or {})}.items()
        }
        self._storage = MemoryStorage()
        self._limiter = MovingWindowRateLimiter(self._storage)

    def limits_for(self, bucket: str) -> List[RateLimitItem]:
        try:
            return self._items[bucket]
        except KeyError as exc:
            raise KeyError(f"Unknown rate limit bucket: {bucket}") from exc

    def _reject(self, bucket: str, identifier: str, item: RateLimitItem) -> None:
        reset_time, _ = self._limiter.get_window_stats(item, bucket, identifier)
        retry_after = max(1, math.ceil(reset_time - time.time()))
        logger.warning(
            "rate_limit_exceeded bucket=%s key=%s limit=%s retry_after=%s",
            bucket,
            identifier,
            item,
            retry_after,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=MESSAGES.get(bucket, "Rate limit exceeded."),
            headers={"Retry-After": str(retry_after)},
        )

    def hit(self, bucket: str, identifier: str) -> None:
        if not self.enabled:
            return
        items = self.limits_for(bucket)
        # A rejected request is not counted against any window.
        for item in items:
            if not self._limiter.test(item, bucket, identifier):
                self._reject(bucket, identifier, item)
        for item in items:
            if not self._limiter.hit(item, bucket, identifier):
                self._reject(bucket, identifier, item)

    def reset(self) -> None:
        self._storage.reset()


def build_rate_limiter() -> RateLimiter:
    enabled = os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() not in {"0", "false", "no", "off"}
    overrides = {}
    for bucket, env_var in LIMIT_ENV_VARS.items():
        value = os.getenv(env_var, "").strip()
        if value:
            overrides[bucket] = value
    return RateLimiter(limits=overrides, enabled=enabled)
