"""
Rate Limiting Module

Per-API call budgets for OpenAI, Google Books, Open Library and friends.
"""

from shelfwise.ratelimit.limiter import (
    RateLimiter,
    ApiLimits,
    UsageStats,
    DEFAULT_API_LIMITS,
)
from shelfwise.ratelimit.store import (
    CounterStore,
    InMemoryCounterStore,
    DatabaseCounterStore,
)

__all__ = [
    # Limiter
    "RateLimiter",
    "ApiLimits",
    "UsageStats",
    "DEFAULT_API_LIMITS",
    # Stores
    "CounterStore",
    "InMemoryCounterStore",
    "DatabaseCounterStore",
]
