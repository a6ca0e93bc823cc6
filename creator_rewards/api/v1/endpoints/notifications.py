"""
In-app notification endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from creator_rewards.api.deps import get_db, get_current_user, get_pagination_params
from creator_rewards.models.db import Notification, User
from creator_rewards.models.schemas.base import ResponseBase
from creator_rewards.models.schemas.notifications import NotificationRead
from creator_rewards.utils.time import utc_now

router = APIRouter()

@router.get("/", response_model=List[NotificationRead], summary="My notifications, newest first")
async def list_notifications(
    unread_only: bool = Query(False),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[NotificationRead]:
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [NotificationRead.model_validate(n) for n in notifications]

@router.post("/{notification_id}/read", response_model=NotificationRead, summary="Mark a notification as read")
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> NotificationRead:
    notification = db.get(Notification, notification_id)
    if not notification or notification.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.read_at is None:
        notification.read_at = utc_now()
        db.commit()
        db.refresh(notification)
    return NotificationRead.model_validate(notification)

@router.post("/read-all", response_model=ResponseBase, summary="Mark every notification as read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ResponseBase:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id, Notification.read_at.is_(None))
        .update({Notification.read_at: utc_now()}, synchronize_session=False)
    )
    db.commit()
    return ResponseBase(message=f"{updated} notification(s) marked as read", data={"updated": updated})
