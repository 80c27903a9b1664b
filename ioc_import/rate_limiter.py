"""Token bucket rate limiter guarding enrichment lookups."""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional


class RateLimitExhaustedError(Exception):
    """Raised when the daily lookup budget is exhausted."""

    pass


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    requests_per_minute: float
    daily_budget: int = 0  # 0 = unlimited
    name: str = "default"


class TokenBucketRateLimiter:
    """Async token bucket rate limiter shared by all import workers."""

    def __init__(self, config: RateLimiterConfig):
        """Initialize the rate limiter."""
        if config.requests_per_minute <= 0:
            raise ValueError(f"{config.name}: requests_per_minute must be positive")
        self.config = config
        self.tokens = config.requests_per_minute
        self.max_tokens = config.requests_per_minute
        self.last_refill = time.monotonic()
        self.daily_count = 0
        self.lock = asyncio.Lock()

    async def acquire(self) -> None:
        """
        Acquire a token before making a lookup.

        Raises:
            RateLimitExhaustedError: If daily budget is exhausted
        """
        async with self.lock:
            if self.config.daily_budget and self.daily_count >= self.config.daily_budget:
                raise RateLimitExhaustedError(
                    f"{self.config.name}: daily budget of {self.config.daily_budget} exhausted"
                )

            now = time.monotonic()
            elapsed = now - self.last_refill
            refill_rate = self.max_tokens / 60.0
            self.tokens = min(self.max_tokens, self.tokens + elapsed * refill_rate)
            self.last_refill = now

            if self.tokens < 1:
                wait_time = (1 - self.tokens) / refill_rate
                await asyncio.sleep(wait_time)
                self.tokens = 0
                self.last_refill = time.monotonic()
            else:
                self.tokens -= 1

            self.daily_count += 1


# Default rate limits for enrichment capabilities
RATE_LIMITS = {
    "internetdb": RateLimiterConfig(requests_per_minute=60, daily_budget=0, name="internetdb"),
}


def make_rate_limiter(source: str, requests_per_minute: Optional[float] = None) -> TokenBucketRateLimiter:
    """Build a limiter for a known source, applying a per-minute override if set."""
    base = RATE_LIMITS[source]
    if requests_per_minute is None:
        return TokenBucketRateLimiter(base)
    return TokenBucketRateLimiter(
        RateLimiterConfig(
            requests_per_minute=requests_per_minute,
            daily_budget=base.daily_budget,
            name=source,
        )
    )
