"""Per-tier reward status for one creator on one campaign.

The status is a read model recomputed on every call from accepted
submissions, the effective tier set, claim rows and unlock rows. Unlocking
is monotonic: the first read observing ``total_views >= views_target``
writes a ``RewardUnlock`` row and later reads honour it even if the live
count drops. New unlock rows are flushed inside savepoints; committing is up
to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from creator_rewards.errors import NotFound
from creator_rewards.models.db.campaigns import Campaign
from creator_rewards.models.db.enums import InvoiceStatus, RewardState, SubmissionStatus
from creator_rewards.models.db.invoices import Invoice, RewardUnlock
from creator_rewards.models.db.submissions import Submission
from creator_rewards.services.global_tiers import db_global_tier_provider
from creator_rewards.services.tier_resolver import GlobalTierProvider, effective_tiers, resolve_tiers
from creator_rewards.utils import get_logger, log_business_event

logger = get_logger(__name__)


@dataclass
class RewardStatusEntry:
    reward_id: int
    views_target: int
    amount_eur: int
    allow_multiple_videos: bool
    label: Optional[str]
    total_views: int
    is_unlocked: bool
    state: RewardState
    anchor_submission_id: Optional[int]
    invoice: Optional[Invoice] = None
    unlocked_at: Optional[datetime] = None

    @property
    def is_claimable(self) -> bool:
        return self.state == RewardState.UNLOCKED_UNCLAIMED and self.anchor_submission_id is not None


def classify(is_unlocked: bool, invoice: Optional[Invoice]) -> RewardState:
    if invoice is not None:
        return RewardState.CLAIM_PAID if invoice.status == InvoiceStatus.PAID else RewardState.CLAIM_UPLOADED
    return RewardState.UNLOCKED_UNCLAIMED if is_unlocked else RewardState.LOCKED


def claim_scope(session: Session, creator_id: int, campaign_id: int) -> list[Submission]:
    """Accepted submissions of the creator on the campaign, oldest first."""
    return (
        session.query(Submission)
        .options(selectinload(Submission.stats))
        .filter(
            Submission.creator_id == creator_id,
            Submission.campaign_id == campaign_id,
            Submission.status == SubmissionStatus.ACCEPTED,
        )
        .order_by(Submission.id)
        .all()
    )


def record_unlock(
    session: Session,
    creator_id: int,
    campaign_id: int,
    reward_id: int,
    views: int,
) -> tuple[RewardUnlock, bool]:
    """Insert the ratchet row for a tier, or return the one a concurrent read wrote.

    The insert runs in a savepoint so losing the race on
    ``unique_unlock_per_creator_tier`` leaves the caller's transaction usable.
    """
    unlock = RewardUnlock(
        creator_id=creator_id,
        campaign_id=campaign_id,
        reward_id=reward_id,
        views_at_unlock=views,
    )
    try:
        with session.begin_nested():
            session.add(unlock)
    except IntegrityError:
        existing = (
            session.query(RewardUnlock)
            .filter_by(creator_id=creator_id, campaign_id=campaign_id, reward_id=reward_id)
            .one()
        )
        logger.info(
            "Unlock already recorded by a concurrent read",
            creator_id=creator_id,
            campaign_id=campaign_id,
            reward_id=reward_id,
        )
        return existing, False
    return unlock, True


def get_reward_status(
    session: Session,
    creator_id: int,
    campaign_id: int,
    global_tier_provider: Optional[GlobalTierProvider] = None,
) -> list[RewardStatusEntry]:
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found")

    provider = global_tier_provider or db_global_tier_provider(session)
    tiers = effective_tiers(campaign.rewards, provider)
    if not tiers:
        return []

    submissions = claim_scope(session, creator_id, campaign_id)
    resolutions = resolve_tiers(tiers, submissions)

    unlocks = {
        u.reward_id: u
        for u in session.query(RewardUnlock).filter(
            RewardUnlock.creator_id == creator_id,
            RewardUnlock.campaign_id == campaign_id,
        )
    }
    invoices = {
        i.reward_id: i
        for i in session.query(Invoice).filter(
            Invoice.creator_id == creator_id,
            Invoice.campaign_id == campaign_id,
        )
    }

    new_unlocks: list[RewardUnlock] = []
    for res in resolutions:
        if res.is_unlocked and res.reward_id not in unlocks:
            unlock, created = record_unlock(session, creator_id, campaign_id, res.reward_id, res.total_views)
            unlocks[res.reward_id] = unlock
            if created:
                new_unlocks.append(unlock)

    entries: list[RewardStatusEntry] = []
    for res in resolutions:
        unlock = unlocks.get(res.reward_id)
        is_unlocked = res.is_unlocked or unlock is not None
        invoice = invoices.get(res.reward_id)
        if invoice is not None:
            anchor_id: Optional[int] = invoice.submission_id
        else:
            anchor_id = res.anchor_candidate_id if is_unlocked else None

        entries.append(RewardStatusEntry(
            reward_id=res.reward_id,
            views_target=res.views_target,
            amount_eur=res.amount_eur,
            allow_multiple_videos=res.allow_multiple_videos,
            label=res.label,
            total_views=res.total_views,
            is_unlocked=is_unlocked,
            state=classify(is_unlocked, invoice),
            anchor_submission_id=anchor_id,
            invoice=invoice,
            unlocked_at=unlock.unlocked_at if unlock is not None else None,
        ))

    for unlock in new_unlocks:
        log_business_event(
            "reward_unlocked",
            {
                "campaign_id": campaign_id,
                "reward_id": unlock.reward_id,
                "views_at_unlock": unlock.views_at_unlock,
            },
            user_id=creator_id,
        )
    logger.debug(
        "Reward status computed",
        creator_id=creator_id,
        campaign_id=campaign_id,
        tiers=len(entries),
        new_unlocks=len(new_unlocks),
    )
    return entries


def unlocked_reward_ids(entries: list[RewardStatusEntry]) -> set[int]:
    return {e.reward_id for e in entries if e.is_unlocked}


__all__ = [
    "RewardStatusEntry",
    "classify",
    "claim_scope",
    "get_reward_status",
    "record_unlock",
    "unlocked_reward_ids",
]
