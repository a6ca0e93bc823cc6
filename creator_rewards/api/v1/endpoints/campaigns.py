"""
Campaign management endpoints, including the creator-facing reward status.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session, selectinload
import time
from creator_rewards.api.deps import (
    get_db,
    get_current_user,
    get_current_brand_user,
    get_current_creator,
    get_owned_campaign,
    get_visible_campaign,
    get_pagination_params,
)
from creator_rewards.errors import InvalidAmount, RewardsError
from creator_rewards.models.db import Campaign, Reward, Submission, User
from creator_rewards.models.db.enums import CampaignStatus, SubmissionStatus, UserRole
from creator_rewards.models.schemas.campaigns import (
    CampaignCreate,
    CampaignRead,
    CampaignReadWithRewards,
    CampaignUpdate,
)
from creator_rewards.models.schemas.rewards import ClaimScopeItem, RewardStatusRead
from creator_rewards.models.schemas.submissions import SubmissionCreate, SubmissionRead, StatsRefreshRead
from creator_rewards.services import stats_refresh, submission_state
from creator_rewards.services.reward_status import claim_scope, get_reward_status
from creator_rewards.services.tier_resolver import validate_tier_set
from creator_rewards.services.view_aggregator import submission_views
from creator_rewards.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

def _with_rewards(campaign: Campaign) -> CampaignReadWithRewards:
    read = CampaignReadWithRewards.model_validate(campaign)
    read.uses_global_tiers = not campaign.rewards
    return read

@router.post(
    "/",
    response_model=CampaignReadWithRewards,
    status_code=status.HTTP_201_CREATED,
    summary="Create new campaign",
    description="Create a campaign for the caller's brand, optionally with its own reward tiers"
)
async def create_campaign(
    campaign_data: CampaignCreate,
    request: Request,
    brand_user: User = Depends(get_current_brand_user),
    db: Session = Depends(get_db)
) -> CampaignReadWithRewards:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "Campaign creation started",
        brand_id=brand_user.brand_id,
        tier_count=len(campaign_data.rewards),
        request_id=request_id
    )

    problems = validate_tier_set(campaign_data.rewards)
    if problems:
        raise InvalidAmount("Invalid reward tiers", details={"problems": problems})

    try:
        campaign = Campaign(
            brand_id=brand_user.brand_id,
            title=campaign_data.title,
            description=campaign_data.description,
            cover_image_url=campaign_data.cover_image_url,
            status=campaign_data.status,
            start_date=campaign_data.start_date,
            end_date=campaign_data.end_date,
        )
        campaign.rewards = [Reward(**tier.model_dump()) for tier in campaign_data.rewards]
        db.add(campaign)
        db.commit()
        db.refresh(campaign)

        log_business_event(
            event_type="campaign_created",
            details={
                "campaign_id": campaign.id,
                "brand_id": campaign.brand_id,
                "status": campaign.status.value,
                "tier_count": len(campaign.rewards),
            },
            user_id=brand_user.id,
            request_id=request_id
        )
        log_performance(
            operation="create_campaign",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"campaign_id": campaign.id}
        )
        return _with_rewards(campaign)

    except (HTTPException, RewardsError):
        raise
    except Exception as e:
        db.rollback()
        logger.error(
            "Campaign creation failed: unexpected error",
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during campaign creation"
        )

@router.get(
    "/",
    response_model=List[CampaignRead],
    summary="List campaigns",
    description="Brands see their own campaigns; creators see active ones"
)
async def list_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[CampaignRead]:
    query = db.query(Campaign).filter(Campaign.status != CampaignStatus.DELETED)
    if current_user.role == UserRole.BRAND:
        query = query.filter(Campaign.brand_id == current_user.brand_id)
    elif current_user.role == UserRole.CREATOR:
        query = query.filter(Campaign.status == CampaignStatus.ACTIVE)
    if status_filter is not None:
        query = query.filter(Campaign.status == status_filter)
    campaigns = (
        query.order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [CampaignRead.model_validate(c) for c in campaigns]

@router.get(
    "/{campaign_id}",
    response_model=CampaignReadWithRewards,
    summary="Get campaign with its reward tiers"
)
async def get_campaign(
    campaign: Campaign = Depends(get_visible_campaign),
    _user: User = Depends(get_current_user),
) -> CampaignReadWithRewards:
    return _with_rewards(campaign)

@router.patch(
    "/{campaign_id}",
    response_model=CampaignRead,
    summary="Update campaign",
    description="Edit campaign details or move it between draft, active, paused and deleted"
)
async def update_campaign(
    payload: CampaignUpdate,
    request: Request,
    campaign: Campaign = Depends(get_owned_campaign),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CampaignRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(campaign, field, value)
    db.commit()
    db.refresh(campaign)
    log_business_event(
        event_type="campaign_updated",
        details={"campaign_id": campaign.id, "fields": sorted(changes), "status": campaign.status.value},
        user_id=current_user.id,
        request_id=request_id
    )
    return CampaignRead.model_validate(campaign)

@router.get(
    "/{campaign_id}/my-rewards-status",
    response_model=List[RewardStatusRead],
    summary="Reward status for the calling creator",
    description="One entry per effective tier: locked, unlocked_unclaimed, claim_uploaded or claim_paid"
)
async def my_rewards_status(
    request: Request,
    campaign: Campaign = Depends(get_visible_campaign),
    creator: User = Depends(get_current_creator),
    db: Session = Depends(get_db)
) -> List[RewardStatusRead]:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    entries = get_reward_status(db, creator.id, campaign.id)
    # Persist unlock rows recorded by this read
    db.commit()
    log_performance(
        operation="get_reward_status",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"campaign_id": campaign.id, "tiers": len(entries), "request_id": request_id}
    )
    return [RewardStatusRead.model_validate(e) for e in entries]

@router.get(
    "/{campaign_id}/claim-scope",
    response_model=List[ClaimScopeItem],
    summary="Accepted videos needing an ads code on the claim form"
)
async def get_claim_scope(
    campaign: Campaign = Depends(get_visible_campaign),
    creator: User = Depends(get_current_creator),
    db: Session = Depends(get_db)
) -> List[ClaimScopeItem]:
    return [
        ClaimScopeItem(
            submission_id=s.id,
            tiktok_video_id=s.tiktok_video_id,
            views=submission_views(s),
            ads_code=s.ads_code,
        )
        for s in claim_scope(db, creator.id, campaign.id)
    ]

@router.post(
    "/{campaign_id}/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a TikTok video to a campaign"
)
async def submit_video(
    campaign_id: int,
    payload: SubmissionCreate,
    request: Request,
    creator: User = Depends(get_current_creator),
    db: Session = Depends(get_db)
) -> SubmissionRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    submission = submission_state.submit(
        db,
        creator,
        campaign_id,
        payload.tiktok_video_id,
        payload.cover_image_url,
        request_id=request_id,
    )
    return SubmissionRead.model_validate(submission)

@router.get(
    "/{campaign_id}/submissions",
    response_model=List[SubmissionRead],
    summary="List a campaign's submissions",
    description="Brand owners see every submission; creators see their own"
)
async def list_campaign_submissions(
    campaign_id: int,
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[SubmissionRead]:
    campaign = get_visible_campaign(campaign_id, db)
    query = db.query(Submission).options(selectinload(Submission.stats)).filter(Submission.campaign_id == campaign.id)
    if current_user.role == UserRole.BRAND:
        if current_user.brand_id != campaign.brand_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    elif current_user.role == UserRole.CREATOR:
        query = query.filter(Submission.creator_id == current_user.id)
    if status_filter is not None:
        query = query.filter(Submission.status == status_filter)
    submissions = (
        query.order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [SubmissionRead.model_validate(s) for s in submissions]

@router.post(
    "/{campaign_id}/refresh-stats",
    response_model=List[StatsRefreshRead],
    summary="Refresh stats for every accepted video of the campaign"
)
async def refresh_campaign_stats(
    request: Request,
    campaign: Campaign = Depends(get_owned_campaign),
    db: Session = Depends(get_db)
) -> List[StatsRefreshRead]:
    start_time = time.time()
    outcomes = stats_refresh.refresh_campaign_stats(db, campaign.id)
    log_performance(
        operation="refresh_campaign_stats",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={
            "campaign_id": campaign.id,
            "submissions": len(outcomes),
            "request_id": request.headers.get("X-Request-ID", "unknown"),
        }
    )
    return [StatsRefreshRead.model_validate(o) for o in outcomes]
