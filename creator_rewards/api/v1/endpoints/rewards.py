"""
Reward tier endpoints: per-campaign tiers and the global default set.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from creator_rewards.api.deps import get_db, get_current_user, get_owned_campaign, require_admin, require_role
from creator_rewards.errors import ClaimInProgress, InvalidAmount
from creator_rewards.models.db import Campaign, Invoice, Reward, RewardUnlock, User
from creator_rewards.models.db.enums import UserRole
from creator_rewards.models.schemas.rewards import GlobalTierSet, RewardCreate, RewardRead, RewardUpdate
from creator_rewards.services.global_tiers import list_global_tiers, replace_global_tiers
from creator_rewards.services.tier_resolver import validate_tier_set
from creator_rewards.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)

class _TierView:
    """Tier values after a pending edit, for set validation."""

    def __init__(self, reward: Reward, **overrides):
        self.id = reward.id
        self.views_target = overrides.get("views_target", reward.views_target)
        self.amount_eur = overrides.get("amount_eur", reward.amount_eur)

def _ensure_valid(tiers) -> None:
    problems = validate_tier_set(tiers)
    if problems:
        raise InvalidAmount("Invalid reward tiers", details={"problems": problems})

def _get_owned_reward(reward_id: int, user: User, db: Session) -> Reward:
    reward = db.get(Reward, reward_id)
    if reward is None or reward.campaign_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reward not found")
    if user.role == UserRole.BRAND and reward.campaign.brand_id != user.brand_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return reward

@router.get(
    "/campaigns/{campaign_id}/rewards",
    response_model=List[RewardRead],
    summary="List a campaign's own reward tiers"
)
async def list_campaign_rewards(
    campaign_id: int,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[RewardRead]:
    rewards = db.query(Reward).filter(Reward.campaign_id == campaign_id).order_by(Reward.views_target).all()
    return [RewardRead.model_validate(r) for r in rewards]

@router.post(
    "/campaigns/{campaign_id}/rewards",
    response_model=RewardRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a reward tier to a campaign"
)
async def create_campaign_reward(
    payload: RewardCreate,
    request: Request,
    campaign: Campaign = Depends(get_owned_campaign),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> RewardRead:
    _ensure_valid([_TierView(r) for r in campaign.rewards] + [payload])
    reward = Reward(campaign_id=campaign.id, **payload.model_dump())
    db.add(reward)
    db.commit()
    db.refresh(reward)
    log_business_event(
        event_type="reward_created",
        details={"reward_id": reward.id, "campaign_id": campaign.id, "views_target": reward.views_target, "amount_eur": reward.amount_eur},
        user_id=current_user.id,
        request_id=request.headers.get("X-Request-ID", "unknown")
    )
    return RewardRead.model_validate(reward)

@router.patch(
    "/rewards/{reward_id}",
    response_model=RewardRead,
    summary="Edit a campaign reward tier",
    description="Existing claims keep the terms they were filed under"
)
async def update_reward(
    reward_id: int,
    payload: RewardUpdate,
    request: Request,
    current_user: User = Depends(require_role([UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> RewardRead:
    reward = _get_owned_reward(reward_id, current_user, db)
    changes = payload.model_dump(exclude_unset=True)
    siblings = [_TierView(r) for r in reward.campaign.rewards if r.id != reward.id]
    _ensure_valid(siblings + [_TierView(reward, **changes)])
    for field, value in changes.items():
        setattr(reward, field, value)
    db.commit()
    db.refresh(reward)
    log_business_event(
        event_type="reward_updated",
        details={"reward_id": reward.id, "campaign_id": reward.campaign_id, "fields": sorted(changes)},
        user_id=current_user.id,
        request_id=request.headers.get("X-Request-ID", "unknown")
    )
    return RewardRead.model_validate(reward)

@router.delete(
    "/rewards/{reward_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a campaign reward tier"
)
async def delete_reward(
    reward_id: int,
    request: Request,
    current_user: User = Depends(require_role([UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> None:
    reward = _get_owned_reward(reward_id, current_user, db)
    if db.query(Invoice.id).filter(Invoice.reward_id == reward.id).first():
        raise ClaimInProgress("Cannot delete a reward tier that already has claims", details={"reward_id": reward.id})
    campaign_id = reward.campaign_id
    db.query(RewardUnlock).filter(RewardUnlock.reward_id == reward.id).delete(synchronize_session=False)
    db.delete(reward)
    db.commit()
    log_business_event(
        event_type="reward_deleted",
        details={"reward_id": reward_id, "campaign_id": campaign_id},
        user_id=current_user.id,
        request_id=request.headers.get("X-Request-ID", "unknown")
    )

@router.get(
    "/global-tiers",
    response_model=List[RewardRead],
    summary="Global default reward tiers",
    description="Used by every campaign that defines no tiers of its own"
)
async def get_global_tiers(
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[RewardRead]:
    return [RewardRead.model_validate(r) for r in list_global_tiers(db)]

@router.put(
    "/global-tiers",
    response_model=List[RewardRead],
    summary="Replace the global default reward tiers"
)
async def put_global_tiers(
    payload: GlobalTierSet,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[RewardRead]:
    tiers = replace_global_tiers(db, [t.model_dump() for t in payload.tiers], actor_id=admin.id)
    return [RewardRead.model_validate(r) for r in tiers]
