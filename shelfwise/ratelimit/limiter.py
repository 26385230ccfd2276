"""
Per-API rate limiting for external services.

Each API name gets two fixed-window counters:
- A short window (one minute by default) against ``per_minute``
- A UTC-day bucket against ``per_day``

The limiter fails open: if the counter store errors, requests are allowed
so enrichment keeps working at the cost of strictness.
"""

import asyncio
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from .store import CounterStore, InMemoryCounterStore


@dataclass(frozen=True)
class ApiLimits:
    """Call budget for one external API."""

    per_minute: int
    per_day: int


DEFAULT_API_LIMITS: dict[str, ApiLimits] = {
    "openai": ApiLimits(per_minute=60, per_day=12000),
    "google-books": ApiLimits(per_minute=100, per_day=5000),
    "google-vision": ApiLimits(per_minute=100, per_day=5000),
    "open-library": ApiLimits(per_minute=60, per_day=2000),
    # Gemini free tier allows ~15/min; stay under it
    "gemini": ApiLimits(per_minute=12, per_day=1500),
}


@dataclass
class UsageStats:
    """Current usage of one API."""

    window_usage: int
    window_seconds: int
    daily_usage: int
    daily_limit: int
    within_limits: bool

    def to_dict(self) -> dict:
        return asdict(self)


# (api_name, level, usage_percent) -> None
AlertHandler = Callable[[str, str, float], None]


class RateLimiter:
    """
    Windowed + daily call counter per API name.

    Usage:
        limiter = RateLimiter(InMemoryCounterStore())
        if await limiter.check_and_increment("openai"):
            ...  # make the call
    """

    DAY_SECONDS = 86400
    WARNING_PERCENT = 80.0
    CRITICAL_PERCENT = 90.0

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        limits: Optional[dict[str, ApiLimits]] = None,
        alert_handler: Optional[AlertHandler] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            store: Counter backend (in-memory if omitted)
            limits: API name -> limits (defaults to DEFAULT_API_LIMITS)
            alert_handler: Called on high daily usage, in addition to logging
            clock: Seconds since epoch, injectable for tests
        """
        self.store = store or InMemoryCounterStore(clock=clock)
        self.limits = dict(limits or DEFAULT_API_LIMITS)
        self.alert_handler = alert_handler
        self._clock = clock
        self._lock = asyncio.Lock()

        logger.info(
            f"RateLimiter initialized: store={type(self.store).__name__}, "
            f"apis={sorted(self.limits)}"
        )

    def _keys(self, api_name: str, window_seconds: int) -> tuple[str, str]:
        """Window and daily bucket keys for the current time."""
        now = self._clock()
        window_start = int((now * 1000) // (window_seconds * 1000))
        today = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%d")
        return f"rate:{api_name}:{window_start}", f"rate:{api_name}:daily:{today}"

    async def _counts(self, window_key: str, daily_key: str) -> tuple[int, int]:
        window_count, daily_count = await asyncio.gather(
            self.store.get(window_key),
            self.store.get(daily_key),
        )
        return window_count or 0, daily_count or 0

    async def is_allowed(self, api_name: str, window_seconds: int = 60) -> bool:
        """
        Check whether a call would be within limits, without counting it.

        Args:
            api_name: API identifier
            window_seconds: Window length

        Returns:
            True if allowed (always True for unknown APIs or store errors)
        """
        limits = self.limits.get(api_name)
        if limits is None:
            logger.info(f"Unknown API: {api_name}, allowing request")
            return True

        try:
            window_key, daily_key = self._keys(api_name, window_seconds)
            window_count, daily_count = await self._counts(window_key, daily_key)
        except Exception as e:
            logger.error(f"Rate limiter error: {e}")
            return True

        within_window = window_count < limits.per_minute
        within_daily = daily_count < limits.per_day

        if not within_window:
            self._log_exceeded(api_name, "window", limits.per_minute, window_count)
        if not within_daily:
            self._log_exceeded(api_name, "daily", limits.per_day, daily_count)

        self._check_for_alerts(api_name, daily_count, limits.per_day)

        return within_window and within_daily

    async def check_and_increment(self, api_name: str, window_seconds: int = 60) -> bool:
        """
        Count a call if, and only if, it fits in both budgets.

        Check and increment happen under one lock, so concurrent callers in
        this process can never overshoot a limit.

        Args:
            api_name: API identifier
            window_seconds: Window length

        Returns:
            True if the call was allowed and counted
        """
        limits = self.limits.get(api_name)
        if limits is None:
            logger.info(f"Unknown API: {api_name}, allowing request")
            return True

        try:
            async with self._lock:
                window_key, daily_key = self._keys(api_name, window_seconds)
                window_count, daily_count = await self._counts(window_key, daily_key)

                if window_count >= limits.per_minute:
                    self._log_exceeded(api_name, "window", limits.per_minute, window_count)
                    return False

                if daily_count >= limits.per_day:
                    self._log_exceeded(api_name, "daily", limits.per_day, daily_count)
                    return False

                new_window, new_daily = await self._increment_keys(
                    window_key, daily_key, window_seconds
                )
        except Exception as e:
            logger.error(f"Rate limiter error: {e}")
            return True

        self._check_for_alerts(api_name, new_daily, limits.per_day)
        logger.debug(f"API call to {api_name}: window={new_window}, daily={new_daily}")
        return True

    async def increment(self, api_name: str, window_seconds: int = 60) -> None:
        """Count a call that was made without a prior check."""
        try:
            async with self._lock:
                window_key, daily_key = self._keys(api_name, window_seconds)
                new_window, new_daily = await self._increment_keys(
                    window_key, daily_key, window_seconds
                )
            logger.debug(f"API call to {api_name}: window={new_window}, daily={new_daily}")
        except Exception as e:
            logger.error(f"Rate limiter increment error: {e}")

    async def _increment_keys(
        self,
        window_key: str,
        daily_key: str,
        window_seconds: int,
    ) -> tuple[int, int]:
        new_window = await self.store.incr(window_key)
        new_daily = await self.store.incr(daily_key)

        # First write into a bucket sets its lifetime
        if new_window == 1:
            await self.store.expire(window_key, window_seconds)
        if new_daily == 1:
            await self.store.expire(daily_key, self.DAY_SECONDS)

        return new_window, new_daily

    async def reset_limits(self, api_name: str, window_seconds: int = 60) -> None:
        """Zero the current window and daily counters for an API."""
        try:
            window_key, daily_key = self._keys(api_name, window_seconds)
            async with self._lock:
                await self.store.set(window_key, 0)
                await self.store.set(daily_key, 0)
            logger.info(f"Reset rate limits for {api_name}")
        except Exception as e:
            logger.error(f"Error resetting limits for {api_name}: {e}")

    async def get_usage_stats(self, window_seconds: int = 60) -> dict[str, UsageStats]:
        """
        Usage of every configured API.

        Returns:
            API name -> UsageStats, or an empty dict if the store fails
        """
        try:
            stats = {}
            for api_name, limits in self.limits.items():
                window_key, daily_key = self._keys(api_name, window_seconds)
                window_usage, daily_usage = await self._counts(window_key, daily_key)
                stats[api_name] = UsageStats(
                    window_usage=window_usage,
                    window_seconds=window_seconds,
                    daily_usage=daily_usage,
                    daily_limit=limits.per_day,
                    within_limits=window_usage < limits.per_minute and daily_usage < limits.per_day,
                )
            return stats
        except Exception as e:
            logger.error(f"Error getting usage stats: {e}")
            return {}

    def _log_exceeded(self, api_name: str, kind: str, limit: int, current: int) -> None:
        logger.warning(
            f"Rate limit reached for {api_name} ({kind}): {current}/{limit}"
        )

    def _check_for_alerts(self, api_name: str, daily_usage: int, daily_limit: int) -> None:
        """Log (and forward) high daily usage. Never affects the decision."""
        if daily_limit <= 0:
            return
        usage_percent = daily_usage * 100 / daily_limit

        if usage_percent >= self.CRITICAL_PERCENT:
            level = "critical"
            logger.critical(
                f"{api_name} API quota is nearly exhausted ({usage_percent:.1f}%): "
                f"{daily_usage}/{daily_limit}"
            )
        elif usage_percent >= self.WARNING_PERCENT:
            level = "warning"
            logger.warning(
                f"High API usage for {api_name}: {usage_percent:.1f}% "
                f"({daily_usage}/{daily_limit})"
            )
        else:
            return

        if self.alert_handler is not None:
            try:
                self.alert_handler(api_name, level, usage_percent)
            except Exception as e:
                logger.error(f"Rate limit alert handler failed: {e}")
