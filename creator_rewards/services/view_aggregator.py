"""View aggregation over a creator's submissions on one campaign.

Pure functions: callers pass already-loaded submissions (ORM rows or any
object exposing ``id``, ``status`` and ``stats.views``). The latest stats
snapshot is used as-is; a lower refreshed count simply replaces the old one.
Unlock stability is handled by the reward status ratchet, not here.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from creator_rewards.models.db.enums import SubmissionStatus


def submission_views(submission: Any) -> int:
    """Latest known view count; missing stats count as zero."""
    stats = getattr(submission, "stats", None)
    if stats is None:
        return 0
    return int(getattr(stats, "views", 0) or 0)


def is_accepted(submission: Any) -> bool:
    return submission.status == SubmissionStatus.ACCEPTED


def accepted_only(submissions: Iterable[Any]) -> list[Any]:
    return [s for s in submissions if is_accepted(s)]


def aggregate(submissions: Iterable[Any]) -> int:
    """Sum of latest views over accepted submissions."""
    return sum(submission_views(s) for s in accepted_only(submissions))


def best_submission(submissions: Iterable[Any]) -> Optional[Any]:
    """Accepted submission with the highest view count (lowest id on ties)."""
    candidates = accepted_only(submissions)
    if not candidates:
        return None
    return min(candidates, key=lambda s: (-submission_views(s), s.id))


__all__ = ["submission_views", "is_accepted", "accepted_only", "aggregate", "best_submission"]
