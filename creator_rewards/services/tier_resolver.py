"""Tier resolution: which reward tiers a submission set unlocks.

Rules:
1. Effective tier set = the campaign's own tiers, or the global default set
   when the campaign defines none. The global set comes from an injected
   provider and is read on every call, never stored on the campaign.
2. ``allow_multiple_videos = True``: views are summed across all accepted
   submissions; any accepted submission (lowest id) can anchor the claim.
3. ``allow_multiple_videos = False``: only the single best accepted
   submission counts, and that submission is the anchor candidate.
4. Tiers are evaluated independently; output is sorted by ``views_target``
   for display only.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

from creator_rewards.services.view_aggregator import accepted_only, aggregate, best_submission, submission_views

GlobalTierProvider = Callable[[], Sequence[Any]]


@dataclass(frozen=True)
class TierResolution:
    reward_id: int
    views_target: int
    amount_eur: int
    allow_multiple_videos: bool
    total_views: int
    is_unlocked: bool
    anchor_candidate_id: Optional[int]
    label: Optional[str] = None


def effective_tiers(campaign_tiers: Sequence[Any], global_tier_provider: Optional[GlobalTierProvider] = None) -> list[Any]:
    """Campaign tiers if any, otherwise whatever the global provider returns now."""
    tiers = list(campaign_tiers)
    if not tiers and global_tier_provider is not None:
        tiers = list(global_tier_provider())
    return sorted(tiers, key=lambda t: (t.views_target, t.id))


def validate_tier_set(tiers: Iterable[Any]) -> list[str]:
    """Return human-readable problems with a tier set (empty when valid)."""
    problems: list[str] = []
    previous: Optional[int] = None
    for tier in sorted(tiers, key=lambda t: t.views_target):
        if tier.views_target <= 0:
            problems.append(f"views_target must be positive (got {tier.views_target})")
        if tier.amount_eur < 0:
            problems.append(f"amount_eur must be non-negative (got {tier.amount_eur})")
        if previous is not None and tier.views_target == previous:
            problems.append(f"duplicate views_target {tier.views_target}")
        previous = tier.views_target
    return problems


def resolve_tier(tier: Any, submissions: Sequence[Any]) -> TierResolution:
    accepted = accepted_only(submissions)
    if tier.allow_multiple_videos:
        total = aggregate(accepted)
        anchor = min(accepted, key=lambda s: s.id) if accepted else None
    else:
        anchor = best_submission(accepted)
        total = submission_views(anchor) if anchor is not None else 0
    return TierResolution(
        reward_id=tier.id,
        views_target=int(tier.views_target),
        amount_eur=int(tier.amount_eur),
        allow_multiple_videos=bool(tier.allow_multiple_videos),
        total_views=total,
        is_unlocked=total >= tier.views_target,
        anchor_candidate_id=anchor.id if anchor is not None else None,
        label=getattr(tier, "label", None),
    )


def resolve_tiers(tiers: Sequence[Any], submissions: Sequence[Any]) -> list[TierResolution]:
    """Resolve every tier against the same submission set."""
    ordered = sorted(tiers, key=lambda t: (t.views_target, t.id))
    return [resolve_tier(t, submissions) for t in ordered]


__all__ = [
    "GlobalTierProvider",
    "TierResolution",
    "effective_tiers",
    "validate_tier_set",
    "resolve_tier",
    "resolve_tiers",
]
