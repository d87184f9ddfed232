"""Client-side throttles for model calls and language switches.

Both limiters reconcile lazily on every access (no background timers) and
persist their counters to local storage so a restart does not reset them.
Missing or corrupt persisted state fails open to "no prior usage".
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from widget.config import LANGUAGE_THROTTLE_KEY, RATE_LIMITS_KEY
from widget.core.storage import LocalStorage
from widget.schemas import RateLimitStatus

logger = structlog.get_logger(__name__)

MINUTE_WINDOW = timedelta(milliseconds=60_000)
DAY_WINDOW = timedelta(milliseconds=86_400_000)
LANGUAGE_WINDOW = timedelta(seconds=60)
MAX_LANGUAGE_SWITCHES = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value, fallback: datetime) -> datetime:
    """Parse an ISO timestamp from storage; anything else becomes `fallback`."""
    if not isinstance(value, str):
        return fallback
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_count(value) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) and value >= 0 else 0


def _seconds_until(target: datetime, now: datetime) -> int:
    return max(0, math.ceil((target - now).total_seconds()))


class RateLimiter:
    """Counts model calls in a per-minute and a per-day window."""

    def __init__(
        self,
        storage: LocalStorage,
        max_requests_per_minute: int = 12,
        max_requests_per_day: int = 1400,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.storage = storage
        self.max_requests_per_minute = max_requests_per_minute
        self.max_requests_per_day = max_requests_per_day
        self._clock = clock

        now = clock()
        self.minute_count = 0
        self.day_count = 0
        self.minute_window_start = now
        self.day_window_start = now

        self._load_state()
        self._apply_resets()

    def _load_state(self) -> None:
        state = self.storage.get_json(RATE_LIMITS_KEY)
        if not isinstance(state, dict):
            return
        now = self._clock()
        self.minute_count = _parse_count(state.get("minuteCount"))
        self.day_count = _parse_count(state.get("dayCount"))
        self.minute_window_start = _parse_time(state.get("minuteWindowStart"), now)
        self.day_window_start = _parse_time(state.get("dayWindowStart"), now)

    def _save_state(self) -> None:
        self.storage.set_json(RATE_LIMITS_KEY, {
            "minuteCount": self.minute_count,
            "dayCount": self.day_count,
            "minuteWindowStart": self.minute_window_start.isoformat(),
            "dayWindowStart": self.day_window_start.isoformat(),
        })

    def _apply_resets(self) -> None:
        """Zero any window whose length has fully elapsed."""
        now = self._clock()
        if now - self.minute_window_start >= MINUTE_WINDOW:
            self.minute_count = 0
            self.minute_window_start = now
        if now - self.day_window_start >= DAY_WINDOW:
            self.day_count = 0
            self.day_window_start = now
        self._save_state()

    def check_limit(self) -> RateLimitStatus:
        """Report whether another model call may be dispatched now.

        The day window is checked first since it is the outer bound; when
        both are exhausted the later, day-level availability is reported.

        Returns:
            RateLimitStatus with `next_available_time` and a user-facing
            message when blocked.
        """
        self._apply_resets()
        now = self._clock()

        if self.day_count >= self.max_requests_per_day:
            logger.warning("ratelimit.blocked", window="day", count=self.day_count)
            return RateLimitStatus(
                can_proceed=False,
                next_available_time=self.day_window_start + DAY_WINDOW,
                message="Daily request limit reached. Please try again tomorrow.",
            )

        if self.minute_count >= self.max_requests_per_minute:
            reset_time = self.minute_window_start + MINUTE_WINDOW
            seconds = _seconds_until(reset_time, now)
            logger.warning("ratelimit.blocked", window="minute", count=self.minute_count)
            return RateLimitStatus(
                can_proceed=False,
                next_available_time=reset_time,
                message=f"Rate limit reached. Please wait {seconds} seconds before sending another message.",
            )

        return RateLimitStatus(can_proceed=True)

    def increment_counter(self) -> None:
        """Count one dispatched call against both windows. Call before dispatch."""
        self._apply_resets()
        self.minute_count += 1
        self.day_count += 1
        self._save_state()
        logger.debug("ratelimit.incremented", minute=self.minute_count, day=self.day_count)

    def get_status(self) -> dict:
        """Current usage against both caps, for display."""
        self._apply_resets()
        return {
            "minute": self.minute_count,
            "day": self.day_count,
            "minute_limit": self.max_requests_per_minute,
            "day_limit": self.max_requests_per_day,
        }


class LanguageSwitchThrottle:
    """Allows at most two language switches per minute, counted from the first."""

    def __init__(self, storage: LocalStorage, clock: Callable[[], datetime] = _utcnow):
        self.storage = storage
        self._clock = clock
        self.switch_count = 0
        self.window_start: datetime | None = None
        self.limited = False
        self._load_state()

    def _load_state(self) -> None:
        state = self.storage.get_json(LANGUAGE_THROTTLE_KEY)
        if not isinstance(state, dict):
            return
        self.switch_count = min(_parse_count(state.get("switchCount")), MAX_LANGUAGE_SWITCHES)
        self.window_start = _parse_time(state.get("windowStart"), None)
        self.limited = state.get("limited") is True and self.window_start is not None
        if self.window_start is None:
            self.switch_count = 0

    def _save_state(self) -> None:
        self.storage.set_json(LANGUAGE_THROTTLE_KEY, {
            "switchCount": self.switch_count,
            "windowStart": self.window_start.isoformat() if self.window_start else None,
            "limited": self.limited,
        })

    def _apply_reset(self) -> None:
        if self.window_start is not None and self._clock() - self.window_start >= LANGUAGE_WINDOW:
            self.switch_count = 0
            self.window_start = None
            self.limited = False
            self._save_state()

    @property
    def reset_time(self) -> datetime | None:
        self._apply_reset()
        return self.window_start + LANGUAGE_WINDOW if self.window_start else None

    def try_switch(self) -> RateLimitStatus:
        """Record a switch if allowed.

        Returns:
            can_proceed=True when the switch was counted; otherwise the time
            the current window closes and a countdown message.
        """
        self._apply_reset()
        now = self._clock()

        if self.limited or self.switch_count >= MAX_LANGUAGE_SWITCHES:
            self.limited = True
            self._save_state()
            reset_time = self.window_start + LANGUAGE_WINDOW
            seconds = _seconds_until(reset_time, now)
            logger.warning("language_throttle.blocked", seconds_left=seconds)
            return RateLimitStatus(
                can_proceed=False,
                next_available_time=reset_time,
                message=f"You can only switch language twice per minute. Please wait {seconds} seconds.",
            )

        if self.switch_count == 0:
            self.window_start = now
        self.switch_count += 1
        self._save_state()
        return RateLimitStatus(can_proceed=True)
