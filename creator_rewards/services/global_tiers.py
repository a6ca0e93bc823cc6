"""Global default tier set (rewards rows with ``campaign_id IS NULL``).

Campaigns without tiers of their own fall back to this set. The provider
returned here is re-queried on every call so an operator edit is visible to
the next status read without touching any campaign.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from creator_rewards.errors import ClaimInProgress, InvalidAmount
from creator_rewards.models.db.invoices import Invoice, RewardUnlock
from creator_rewards.models.db.rewards import Reward
from creator_rewards.services.tier_resolver import GlobalTierProvider, validate_tier_set
from creator_rewards.utils import get_logger, log_business_event

logger = get_logger(__name__)


def list_global_tiers(session: Session) -> list[Reward]:
    return (
        session.query(Reward)
        .filter(Reward.campaign_id.is_(None))
        .order_by(Reward.views_target, Reward.id)
        .all()
    )


def db_global_tier_provider(session: Session) -> GlobalTierProvider:
    return lambda: list_global_tiers(session)


class _TierDraft:
    def __init__(self, data: Mapping[str, Any]):
        self.id = 0
        self.views_target = int(data["views_target"])
        self.amount_eur = int(data["amount_eur"])
        self.allow_multiple_videos = bool(data.get("allow_multiple_videos", True))
        self.label = data.get("label")


def replace_global_tiers(session: Session, tiers: Iterable[Mapping[str, Any]], actor_id: int | None = None) -> list[Reward]:
    """Replace the global set, keyed by ``views_target``.

    Matching targets are updated in place so existing unlocks and claims keep
    pointing at the same row. A tier that would disappear while an invoice
    references it raises ``ClaimInProgress``.
    """
    drafts = [_TierDraft(t) for t in tiers]
    problems = validate_tier_set(drafts)
    if problems:
        raise InvalidAmount("Invalid global tier set", details={"problems": problems})

    existing = {r.views_target: r for r in list_global_tiers(session)}
    wanted = {d.views_target for d in drafts}

    try:
        for target, reward in existing.items():
            if target in wanted:
                continue
            claimed = session.query(Invoice.id).filter(Invoice.reward_id == reward.id).first()
            if claimed:
                raise ClaimInProgress(
                    "Cannot remove a global tier that already has claims",
                    details={"reward_id": reward.id, "views_target": target},
                )
            dropped = session.query(RewardUnlock).filter(RewardUnlock.reward_id == reward.id).delete(synchronize_session=False)
            logger.info("Global tier removed", reward_id=reward.id, views_target=target, dropped_unlocks=dropped)
            session.delete(reward)

        for draft in drafts:
            reward = existing.get(draft.views_target)
            if reward is None:
                reward = Reward(campaign_id=None, views_target=draft.views_target)
                session.add(reward)
            reward.amount_eur = draft.amount_eur
            reward.allow_multiple_videos = draft.allow_multiple_videos
            reward.label = draft.label
        session.commit()
    except Exception:
        session.rollback()
        raise

    result = list_global_tiers(session)
    log_business_event(
        "global_tiers_replaced",
        {"tier_count": len(result), "views_targets": [r.views_target for r in result]},
        user_id=actor_id,
    )
    return result


__all__ = ["list_global_tiers", "db_global_tier_provider", "replace_global_tiers"]
