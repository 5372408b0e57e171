"""Per-client request limits for the credential endpoints.

Codes are six digits and live for ten minutes, so the per-IP limits on
the auth and OTP endpoints are what bound guessing in practice.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Endpoint groups with their own budget."""

    AUTH = "auth"
    OTP = "otp"


@dataclass(frozen=True)
class RateLimitConfig:
    requests: int
    window_seconds: int


RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    # login, register, reset requests
    RateLimitType.AUTH: RateLimitConfig(requests=10, window_seconds=60),
    # anything that checks a submitted code
    RateLimitType.OTP: RateLimitConfig(requests=5, window_seconds=60),
}


@dataclass
class RateLimitResult:
    """Outcome of one check, shaped for the X-RateLimit headers."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """Sliding window counter held in process memory.

    Only correct for a single API process; several workers each keep
    their own windows. Idle keys are swept every ``cleanup_interval``
    seconds so spoofed or one-off addresses do not accumulate.
    """

    def __init__(self, cleanup_interval: float = 60.0) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = time.time()

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a hit for ``identifier`` unless its window is already full."""
        config = RATE_LIMIT_CONFIG[limit_type]
        now = time.time()

        if now - self._last_cleanup >= self.cleanup_interval:
            await self.cleanup_old_entries()

        async with self._lock:
            hits = self._hits.setdefault(f"{limit_type.value}:{identifier}", deque())
            _prune(hits, now - config.window_seconds)

            if len(hits) >= config.requests:
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(hits[0] + config.window_seconds),
                )

            hits.append(now)
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(hits),
                reset=int(now + config.window_seconds),
            )

    async def cleanup_old_entries(self) -> int:
        """Drop keys whose window holds no recent hits.

        Returns:
            Number of keys removed
        """
        now = time.time()
        async with self._lock:
            self._last_cleanup = now
            stale = []
            for key, hits in self._hits.items():
                limit_type = RateLimitType(key.split(":", 1)[0])
                _prune(hits, now - RATE_LIMIT_CONFIG[limit_type].window_seconds)
                if not hits:
                    stale.append(key)
            for key in stale:
                del self._hits[key]
        return len(stale)

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        """Forget every window."""
        self._hits.clear()


def _prune(hits: deque[float], cutoff: float) -> None:
    while hits and hits[0] <= cutoff:
        hits.popleft()


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Best guess at the caller's address behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else None


async def check_rate_limit(request: Request, limit_type: RateLimitType) -> RateLimitResult:
    """Check the limit for the calling IP."""
    return await get_rate_limiter().check(f"ip:{get_client_ip(request) or 'unknown'}", limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))
    return headers
