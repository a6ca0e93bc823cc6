"""Submission lifecycle: pending -> accepted | refused (both terminal).

Accept and refuse are serialized per submission with a conditional update
on ``status = 'pending'``; the losing writer sees ``InvalidState`` and the
first decision stands.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from creator_rewards.errors import (
    ClaimInProgress,
    Duplicate,
    InvalidState,
    NotFound,
    Unauthorized,
)
from creator_rewards.models.db.campaigns import Campaign
from creator_rewards.models.db.enums import CampaignStatus, NotificationType, SubmissionStatus, UserRole
from creator_rewards.models.db.invoices import Invoice
from creator_rewards.models.db.submissions import Submission, VideoStats
from creator_rewards.models.db.users import User
from creator_rewards.services.notifications import NotificationService, brand_user_ids, notification_service
from creator_rewards.utils import get_logger, log_business_event
from creator_rewards.utils.time import utc_now

logger = get_logger(__name__)


def _owns_campaign(user: User, campaign: Campaign) -> bool:
    return user.role == UserRole.BRAND and user.brand_id is not None and user.brand_id == campaign.brand_id


def get_submission(session: Session, submission_id: int) -> Submission:
    submission = session.get(Submission, submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    return submission


def submit(
    session: Session,
    creator: User,
    campaign_id: int,
    tiktok_video_id: str,
    cover_image_url: Optional[str] = None,
    *,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> Submission:
    if creator.role != UserRole.CREATOR:
        raise Unauthorized("Only creators can submit videos")
    campaign = session.get(Campaign, campaign_id)
    if campaign is None or campaign.status == CampaignStatus.DELETED:
        raise NotFound("Campaign not found")
    if campaign.status != CampaignStatus.ACTIVE:
        raise InvalidState("Campaign is not accepting submissions", details={"status": campaign.status.value})

    video_id = tiktok_video_id.strip()
    duplicate = (
        session.query(Submission.id)
        .filter(
            Submission.creator_id == creator.id,
            Submission.tiktok_video_id == video_id,
            Submission.status != SubmissionStatus.REFUSED,
        )
        .first()
    )
    if duplicate is not None:
        raise Duplicate("This video has already been submitted", details={"submission_id": duplicate[0]})

    submission = Submission(
        campaign_id=campaign_id,
        creator_id=creator.id,
        tiktok_video_id=video_id,
        cover_image_url=cover_image_url,
        status=SubmissionStatus.PENDING,
    )
    try:
        session.add(submission)
        session.flush()
        session.add(VideoStats(submission_id=submission.id, views=0, likes=0, comments=0, shares=0))
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(submission)

    log_business_event(
        "submission_created",
        {"submission_id": submission.id, "campaign_id": campaign_id, "tiktok_video_id": video_id},
        user_id=creator.id,
        request_id=request_id,
    )
    (notifier or notification_service).notify_many(
        brand_user_ids(session, campaign.brand_id),
        NotificationType.NEW_SUBMISSION,
        {"creator_name": creator.name, "campaign_title": campaign.title},
        {"submission_id": submission.id, "campaign_id": campaign_id},
    )
    return submission


def _decide(
    session: Session,
    submission_id: int,
    actor: User,
    target: SubmissionStatus,
    reason: Optional[str],
) -> Submission:
    submission = get_submission(session, submission_id)
    campaign = submission.campaign
    if not _owns_campaign(actor, campaign):
        raise Unauthorized("Only the campaign's brand can review submissions")
    if submission.status != SubmissionStatus.PENDING:
        raise InvalidState(
            f"Submission is already {submission.status.value}",
            details={"status": submission.status.value},
        )

    values = {Submission.status: target, Submission.validated_at: utc_now()}
    if target == SubmissionStatus.REFUSED:
        values[Submission.refuse_reason] = reason
    try:
        updated = (
            session.query(Submission)
            .filter(Submission.id == submission_id, Submission.status == SubmissionStatus.PENDING)
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            raise InvalidState("Submission was already reviewed")
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(submission)
    return submission


def accept(
    session: Session,
    submission_id: int,
    actor: User,
    *,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> Submission:
    submission = _decide(session, submission_id, actor, SubmissionStatus.ACCEPTED, None)
    log_business_event(
        "submission_accepted",
        {"submission_id": submission.id, "campaign_id": submission.campaign_id, "creator_id": submission.creator_id},
        user_id=actor.id,
        request_id=request_id,
    )
    (notifier or notification_service).notify(
        submission.creator_id,
        NotificationType.SUBMISSION_ACCEPTED,
        {"campaign_title": submission.campaign.title},
        {"submission_id": submission.id, "campaign_id": submission.campaign_id},
    )
    return submission


def refuse(
    session: Session,
    submission_id: int,
    actor: User,
    reason: Optional[str] = None,
    *,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> Submission:
    reason = reason.strip() if reason and reason.strip() else None
    submission = _decide(session, submission_id, actor, SubmissionStatus.REFUSED, reason)
    log_business_event(
        "submission_refused",
        {"submission_id": submission.id, "campaign_id": submission.campaign_id, "reason": reason},
        user_id=actor.id,
        request_id=request_id,
    )
    (notifier or notification_service).notify(
        submission.creator_id,
        NotificationType.SUBMISSION_REFUSED,
        {"campaign_title": submission.campaign.title, "reason": reason or ""},
        {"submission_id": submission.id, "campaign_id": submission.campaign_id},
    )
    return submission


def delete(
    session: Session,
    submission_id: int,
    actor: User,
    *,
    request_id: Optional[str] = None,
) -> None:
    """Creators withdraw pending videos; brands remove accepted ones."""
    submission = get_submission(session, submission_id)
    if actor.id == submission.creator_id:
        if submission.status != SubmissionStatus.PENDING:
            raise InvalidState("Only pending submissions can be withdrawn")
    elif _owns_campaign(actor, submission.campaign):
        if submission.status != SubmissionStatus.ACCEPTED:
            raise InvalidState("Only accepted submissions can be removed by the brand")
    else:
        raise Unauthorized("You cannot delete this submission")

    anchored = session.query(Invoice.id).filter(Invoice.submission_id == submission_id).first()
    if anchored is not None:
        raise ClaimInProgress(
            "Submission carries a reward claim and cannot be deleted",
            details={"invoice_id": anchored[0]},
        )

    details = {
        "submission_id": submission.id,
        "campaign_id": submission.campaign_id,
        "status": submission.status.value,
    }
    try:
        session.delete(submission)
        session.commit()
    except Exception:
        session.rollback()
        raise
    log_business_event("submission_deleted", details, user_id=actor.id, request_id=request_id)


__all__ = ["get_submission", "submit", "accept", "refuse", "delete"]
