"""
Submission review endpoints (accept, refuse, delete) and stats refresh.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session, selectinload
import time
from creator_rewards.api.deps import get_db, get_current_user, get_current_brand_user, get_pagination_params
from creator_rewards.models.db import Campaign, Submission, User
from creator_rewards.models.db.enums import SubmissionStatus, UserRole
from creator_rewards.models.schemas.submissions import SubmissionRead, SubmissionRefuse, StatsRefreshRead
from creator_rewards.services import stats_refresh, submission_state
from creator_rewards.utils import get_logger, log_performance

router = APIRouter()
logger = get_logger(__name__)

def _can_view(user: User, submission: Submission) -> bool:
    if user.role == UserRole.ADMIN or user.id == submission.creator_id:
        return True
    return user.role == UserRole.BRAND and submission.campaign.brand_id == user.brand_id

@router.get(
    "/",
    response_model=List[SubmissionRead],
    summary="List submissions",
    description="Creators get their own videos; brand users get videos submitted to their campaigns"
)
async def list_submissions(
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    campaign_id: Optional[int] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[SubmissionRead]:
    query = db.query(Submission).options(selectinload(Submission.stats))
    if current_user.role == UserRole.CREATOR:
        query = query.filter(Submission.creator_id == current_user.id)
    elif current_user.role == UserRole.BRAND:
        query = query.join(Campaign, Submission.campaign_id == Campaign.id).filter(Campaign.brand_id == current_user.brand_id)
    if campaign_id is not None:
        query = query.filter(Submission.campaign_id == campaign_id)
    if status_filter is not None:
        query = query.filter(Submission.status == status_filter)
    submissions = (
        query.order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [SubmissionRead.model_validate(s) for s in submissions]

@router.get("/{submission_id}", response_model=SubmissionRead, summary="Get submission")
async def get_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> SubmissionRead:
    submission = submission_state.get_submission(db, submission_id)
    if not _can_view(current_user, submission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return SubmissionRead.model_validate(submission)

@router.post(
    "/{submission_id}/accept",
    response_model=SubmissionRead,
    summary="Accept a pending submission"
)
async def accept_submission(
    submission_id: int,
    request: Request,
    brand_user: User = Depends(get_current_brand_user),
    db: Session = Depends(get_db)
) -> SubmissionRead:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    submission = submission_state.accept(db, submission_id, brand_user, request_id=request_id)
    log_performance(
        operation="accept_submission",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"submission_id": submission.id}
    )
    return SubmissionRead.model_validate(submission)

@router.post(
    "/{submission_id}/refuse",
    response_model=SubmissionRead,
    summary="Refuse a pending submission"
)
async def refuse_submission(
    submission_id: int,
    request: Request,
    payload: Optional[SubmissionRefuse] = None,
    brand_user: User = Depends(get_current_brand_user),
    db: Session = Depends(get_db)
) -> SubmissionRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    reason = payload.reason if payload else None
    submission = submission_state.refuse(db, submission_id, brand_user, reason, request_id=request_id)
    return SubmissionRead.model_validate(submission)

@router.delete(
    "/{submission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a submission",
    description="Creators withdraw pending videos; brand owners remove accepted ones without a claim"
)
async def delete_submission(
    submission_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> None:
    request_id = request.headers.get("X-Request-ID", "unknown")
    submission_state.delete(db, submission_id, current_user, request_id=request_id)

@router.post(
    "/{submission_id}/refresh-stats",
    response_model=StatsRefreshRead,
    summary="Pull the latest TikTok counters for a submission"
)
async def refresh_submission_stats(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> StatsRefreshRead:
    submission = submission_state.get_submission(db, submission_id)
    if not _can_view(current_user, submission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    outcome = stats_refresh.refresh_submission_stats(db, submission)
    return StatsRefreshRead.model_validate(outcome)
