"""Refresh stored video stats from the feed and announce new milestones.

A refresh writes the latest snapshot plus a history row, then re-reads the
creator's reward status; any tier that becomes unlocked by this refresh
produces a ``milestone_reached`` notification. When the feed returns
nothing the stored snapshot is left untouched.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from creator_rewards.config import STATS_REFRESH_SETTINGS
from creator_rewards.models.db.campaigns import Campaign
from creator_rewards.models.db.enums import NotificationType, SubmissionStatus
from creator_rewards.models.db.submissions import Submission, VideoStats, VideoStatsHistory
from creator_rewards.services.notifications import NotificationService, notification_service
from creator_rewards.services.reward_status import get_reward_status, unlocked_reward_ids
from creator_rewards.services.stats_feed import StatsFeed, TikTokStatsFeed
from creator_rewards.utils import get_logger, log_performance

logger = get_logger(__name__)


@dataclass
class RefreshOutcome:
    submission_id: int
    updated: bool
    views_before: int
    views_after: int
    milestones: list[int] = field(default_factory=list)


def _trim_history(session: Session, submission_id: int) -> None:
    keep = int(STATS_REFRESH_SETTINGS["history_retention"])
    stale = (
        session.query(VideoStatsHistory.id)
        .filter(VideoStatsHistory.submission_id == submission_id)
        .order_by(VideoStatsHistory.captured_at.desc(), VideoStatsHistory.id.desc())
        .offset(keep)
        .all()
    )
    if stale:
        session.query(VideoStatsHistory).filter(
            VideoStatsHistory.id.in_([row[0] for row in stale])
        ).delete(synchronize_session=False)


def refresh_submission_stats(
    session: Session,
    submission: Submission,
    feed: Optional[StatsFeed] = None,
    *,
    notifier: Optional[NotificationService] = None,
) -> RefreshOutcome:
    start_time = time.time()
    feed = feed or TikTokStatsFeed()
    views_before = submission.stats.views if submission.stats is not None else 0
    track_milestones = submission.status == SubmissionStatus.ACCEPTED

    before: set[int] = set()
    if track_milestones:
        before = unlocked_reward_ids(get_reward_status(session, submission.creator_id, submission.campaign_id))

    snapshot = feed.get_current_stats(submission)
    if snapshot is None:
        # Status read above may have recorded ratchet rows
        session.commit()
        logger.warning("Stats unavailable; keeping last known snapshot", submission_id=submission.id, views=views_before)
        return RefreshOutcome(submission.id, False, views_before, views_before)

    milestones: list[int] = []
    try:
        stats = submission.stats
        if stats is None:
            stats = VideoStats(submission_id=submission.id)
            session.add(stats)
            submission.stats = stats
        stats.views = snapshot.views
        stats.likes = snapshot.likes
        stats.comments = snapshot.comments
        stats.shares = snapshot.shares
        session.add(VideoStatsHistory(submission_id=submission.id, stats=snapshot.as_dict()))
        session.flush()
        _trim_history(session, submission.id)

        if track_milestones:
            after = get_reward_status(session, submission.creator_id, submission.campaign_id)
            milestones = sorted(unlocked_reward_ids(after) - before)
            targets = {e.reward_id: e.views_target for e in after}
        session.commit()
    except Exception:
        session.rollback()
        raise

    if milestones:
        campaign = session.get(Campaign, submission.campaign_id)
        sink = notifier or notification_service
        for reward_id in milestones:
            sink.notify(
                submission.creator_id,
                NotificationType.MILESTONE_REACHED,
                {"views_target": targets[reward_id], "campaign_title": campaign.title if campaign else ""},
                {"campaign_id": submission.campaign_id, "reward_id": reward_id, "submission_id": submission.id},
            )

    log_performance(
        "refresh_submission_stats",
        (time.time() - start_time) * 1000,
        {"submission_id": submission.id, "milestones": len(milestones)},
    )
    return RefreshOutcome(submission.id, True, views_before, snapshot.views, milestones)


def refresh_campaign_stats(
    session: Session,
    campaign_id: int,
    feed: Optional[StatsFeed] = None,
    *,
    notifier: Optional[NotificationService] = None,
) -> list[RefreshOutcome]:
    """Refresh every accepted submission of a campaign, oldest first."""
    feed = feed or TikTokStatsFeed()
    submissions = (
        session.query(Submission)
        .filter(Submission.campaign_id == campaign_id, Submission.status == SubmissionStatus.ACCEPTED)
        .order_by(Submission.id)
        .all()
    )
    outcomes = [refresh_submission_stats(session, s, feed, notifier=notifier) for s in submissions]
    logger.info(
        "Campaign stats refreshed",
        campaign_id=campaign_id,
        submissions=len(outcomes),
        updated=sum(1 for o in outcomes if o.updated),
    )
    return outcomes


__all__ = ["RefreshOutcome", "refresh_submission_stats", "refresh_campaign_stats"]
