"""In-app notification sink.

``notify`` is fire-and-forget: it writes through its own session so a
failure can never roll back the state transition that triggered it, and
every error is logged and swallowed. Callers invoke it only after their own
transaction has committed.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from creator_rewards import database
from creator_rewards.models.db.enums import NotificationType, UserRole
from creator_rewards.models.db.notifications import Notification
from creator_rewards.models.db.users import User
from creator_rewards.utils import get_logger

logger = get_logger(__name__)

# type -> (title, message template); placeholders use str.format syntax
NOTIFICATION_TEMPLATES: Dict[NotificationType, tuple[str, str]] = {
    NotificationType.SUBMISSION_ACCEPTED: (
        "Video accepted", "Your video for \"{campaign_title}\" was accepted."),
    NotificationType.SUBMISSION_REFUSED: (
        "Video refused", "Your video for \"{campaign_title}\" was refused. {reason}"),
    NotificationType.NEW_SUBMISSION: (
        "New submission", "{creator_name} submitted a video to \"{campaign_title}\"."),
    NotificationType.INVOICE_UPLOADED: (
        "New invoice", "{creator_name} filed a claim for \"{campaign_title}\"."),
    NotificationType.INVOICE_PAID: (
        "Invoice paid", "Your reward of {amount} EUR for \"{campaign_title}\" has been paid."),
    NotificationType.MILESTONE_REACHED: (
        "Milestone reached", "You reached {views_target} views on \"{campaign_title}\". Claim your reward!"),
    NotificationType.REFERRAL_NEW_REFEREE: (
        "New referee", "{referee_name} signed up with your referral code."),
    NotificationType.REFERRAL_COMMISSION_EARNED: (
        "Commission earned", "You earned {amount} EUR thanks to {referee_name}."),
    NotificationType.REFERRAL_INVOICE_UPLOADED: (
        "Referral withdrawal", "{creator_name} requested a withdrawal of {amount} EUR."),
    NotificationType.REFERRAL_INVOICE_PAID: (
        "Withdrawal paid", "Your referral withdrawal of {amount} EUR has been paid."),
}


def format_cents(amount_cents: int) -> str:
    return f"{amount_cents / 100:.2f}"


def render(notification_type: NotificationType, payload: Optional[Dict[str, Any]]) -> tuple[str, str]:
    title, template = NOTIFICATION_TEMPLATES[notification_type]
    values: Dict[str, Any] = defaultdict(str, payload or {})
    return title, template.format_map(values).strip()


class NotificationService:
    """Persists notifications in a dedicated session per call."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _new_session(self) -> Session:
        if self._session_factory is not None:
            return self._session_factory()
        # Looked up at call time so test suites can rebind SessionLocal
        return database.SessionLocal()

    def notify(
        self,
        user_id: int,
        notification_type: NotificationType,
        payload: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        session: Optional[Session] = None
        try:
            title, message = render(notification_type, payload)
            session = self._new_session()
            session.add(Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                data=data,
            ))
            session.commit()
            logger.debug("Notification stored", user_id=user_id, notification_type=notification_type.value)
            return True
        except Exception as e:
            logger.error(
                "Notification delivery failed",
                user_id=user_id,
                notification_type=notification_type.value,
                error=str(e),
                exc_info=True,
            )
            if session is not None:
                session.rollback()
            return False
        finally:
            if session is not None:
                session.close()

    def notify_many(
        self,
        user_ids: Iterable[int],
        notification_type: NotificationType,
        payload: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> int:
        return sum(1 for uid in user_ids if self.notify(uid, notification_type, payload, data))


def brand_user_ids(session: Session, brand_id: int) -> list[int]:
    rows = session.query(User.id).filter(
        User.brand_id == brand_id,
        User.role == UserRole.BRAND,
        User.is_active == True,  # noqa: E712
    ).all()
    return [r[0] for r in rows]


def all_brand_user_ids(session: Session) -> list[int]:
    rows = session.query(User.id).filter(User.role == UserRole.BRAND, User.is_active == True).all()  # noqa: E712
    return [r[0] for r in rows]


notification_service = NotificationService()

__all__ = [
    "NotificationService",
    "notification_service",
    "brand_user_ids",
    "all_brand_user_ids",
    "format_cents",
    "render",
]
