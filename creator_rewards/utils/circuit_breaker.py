"""Process-local circuit breaker for the external stats feed.

Each feed (only ``tiktok`` today) moves CLOSED -> OPEN after
``failure_threshold`` consecutive failed fetches. While OPEN, refreshes are
skipped and reward reads keep using the last stored snapshot. After
``open_cooldown_seconds`` the feed goes HALF_OPEN and lets at most
``half_open_probe_count`` fetches through; one success closes it, one
failure reopens it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional

from creator_rewards.config import CIRCUIT_BREAKER
from creator_rewards.utils.logger import get_logger
from creator_rewards.utils.time import utc_now

logger = get_logger(__name__)


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class FeedHealth:
    state: BreakerState = BreakerState.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[datetime] = None
    probes_used: int = 0
    skipped_calls: int = 0
    last_error: Optional[str] = None


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        cooldown_seconds: Optional[float] = None,
        probe_budget: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.failure_threshold = int(failure_threshold or CIRCUIT_BREAKER["failure_threshold"])
        self.cooldown = timedelta(seconds=float(cooldown_seconds or CIRCUIT_BREAKER["open_cooldown_seconds"]))
        self.probe_budget = int(probe_budget or CIRCUIT_BREAKER["half_open_probe_count"])
        self.clock = clock
        self._feeds: Dict[str, FeedHealth] = {}

    def health(self, feed: str) -> FeedHealth:
        return self._feeds.setdefault(feed, FeedHealth())

    def _move(self, feed: str, health: FeedHealth, state: BreakerState) -> None:
        if health.state != state:
            logger.info(
                "Stats feed breaker state changed",
                feed=feed,
                from_state=health.state.value,
                to_state=state.value,
                consecutive_failures=health.consecutive_failures,
            )
        health.state = state

    def allow_call(self, feed: str) -> tuple[bool, Optional[str]]:
        """Whether a fetch may go out now, plus the reason when it may not."""
        health = self.health(feed)
        if health.state == BreakerState.OPEN:
            if health.opened_at is None or self.clock() - health.opened_at < self.cooldown:
                health.skipped_calls += 1
                return False, "circuit_open"
            self._move(feed, health, BreakerState.HALF_OPEN)
            health.probes_used = 0
        if health.state == BreakerState.HALF_OPEN:
            if health.probes_used >= self.probe_budget:
                health.skipped_calls += 1
                return False, "half_open_probe_exhausted"
            health.probes_used += 1
        return True, None

    def record_success(self, feed: str) -> None:
        health = self.health(feed)
        health.consecutive_failures = 0
        health.opened_at = None
        health.probes_used = 0
        health.last_error = None
        self._move(feed, health, BreakerState.CLOSED)

    def record_failure(self, feed: str, error: Optional[str] = None) -> None:
        health = self.health(feed)
        health.consecutive_failures += 1
        health.last_error = error
        tripped = health.state == BreakerState.HALF_OPEN or (
            health.state == BreakerState.CLOSED and health.consecutive_failures >= self.failure_threshold
        )
        if tripped:
            health.opened_at = self.clock()
            self._move(feed, health, BreakerState.OPEN)

    def reset(self) -> None:
        self._feeds.clear()

    def snapshot(self) -> dict[str, dict[str, object]]:
        """Per-feed view for ``/health/detailed``."""
        return {
            feed: {
                "state": h.state.value,
                "failures": h.consecutive_failures,
                "opened_at": h.opened_at.isoformat() if h.opened_at else None,
                "skipped_calls": h.skipped_calls,
                "last_error": h.last_error,
            }
            for feed, h in self._feeds.items()
        }


GLOBAL_CIRCUIT_BREAKER = CircuitBreaker()

__all__ = ["BreakerState", "FeedHealth", "CircuitBreaker", "GLOBAL_CIRCUIT_BREAKER"]
