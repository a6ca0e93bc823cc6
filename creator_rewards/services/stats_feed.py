"""Stats feed wrapper applying circuit breaker and retries.

The reward core only ever asks for ``get_current_stats(submission)``. A
failed fetch returns ``None`` and the caller keeps the last-known snapshot;
stale-but-available numbers are preferred over blocking reads.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from creator_rewards.config import BACKOFF_POLICY
from creator_rewards.utils import get_logger
from creator_rewards.utils.backoff import compute_backoff_seconds
from creator_rewards.utils.circuit_breaker import CircuitBreaker, GLOBAL_CIRCUIT_BREAKER

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatsSnapshot:
    views: int
    likes: int = 0
    comments: int = 0
    shares: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"views": self.views, "likes": self.likes, "comments": self.comments, "shares": self.shares}


class StatsFeed(Protocol):
    def get_current_stats(self, submission: Any) -> Optional[StatsSnapshot]: ...


def _default_fetch(video_id: str) -> Dict[str, Any]:
    from creator_rewards.integrations.tiktok import fetch_video_stats
    return fetch_video_stats(video_id)


class TikTokStatsFeed:
    """Resilient fetch of TikTok counters for one submission."""

    feed_name = "tiktok"

    def __init__(
        self,
        fetch: Optional[Callable[[str], Dict[str, Any]]] = None,
        max_attempts: int | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetch = fetch or _default_fetch
        self.max_attempts = int(max_attempts or BACKOFF_POLICY["max_attempts"])
        self.breaker = breaker or GLOBAL_CIRCUIT_BREAKER
        self.sleep = sleep

    @staticmethod
    def _parse(data: Any) -> Optional[StatsSnapshot]:
        if not isinstance(data, dict) or data.get("views") is None:
            return None
        return StatsSnapshot(
            views=max(int(data["views"]), 0),
            likes=max(int(data.get("likes") or 0), 0),
            comments=max(int(data.get("comments") or 0), 0),
            shares=max(int(data.get("shares") or 0), 0),
        )

    def get_current_stats(self, submission: Any) -> Optional[StatsSnapshot]:
        video_id = submission.tiktok_video_id
        allow, reason = self.breaker.allow_call(self.feed_name)
        if not allow:
            logger.warning("Stats fetch skipped due to circuit breaker", video_id=video_id, reason=reason)
            return None

        attempts = 0
        while attempts < self.max_attempts:
            attempts += 1
            try:
                snapshot = self._parse(self.fetch(video_id))
                error = None if snapshot is not None else "invalid feed payload"
            except Exception as e:  # provider failures are classified, not propagated
                snapshot, error = None, str(e)

            if snapshot is not None:
                self.breaker.record_success(self.feed_name)
                return snapshot

            self.breaker.record_failure(self.feed_name, error)
            if attempts >= self.max_attempts:
                break
            backoff = compute_backoff_seconds(attempts)
            logger.warning(
                "Stats fetch retry scheduled",
                video_id=video_id,
                attempt=attempts,
                backoff_seconds=round(backoff, 2),
                error=error,
            )
            self.sleep(backoff)

        logger.error("Stats fetch failed; keeping last known values", video_id=video_id, attempts=attempts)
        return None


__all__ = ["StatsSnapshot", "StatsFeed", "TikTokStatsFeed"]
