"""Referral commission engine.

Lifecycle of a commission: ``pending`` when the referee's invoice is paid,
``available`` once the hold period elapses, ``withdrawn`` when the
referrer's own withdrawal invoice is paid. Commissions are atomic: a
withdrawal must consume a FIFO prefix of available commissions exactly, and
the consumed rows are reserved (``referral_invoice_id``) until payment.

Amounts are integer euro cents; ``compute_commission`` floors.
"""
from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from creator_rewards.config import REFERRAL_SETTINGS
from creator_rewards.errors import (
    InsufficientBalance,
    InvalidAmount,
    InvalidState,
    NotFound,
    Unauthorized,
)
from creator_rewards.models.db.enums import (
    CommissionStatus,
    InvoiceStatus,
    NotificationType,
    PaymentMethod,
    UserRole,
)
from creator_rewards.models.db.invoices import Invoice
from creator_rewards.models.db.referrals import ReferralCommission, ReferralInvoice
from creator_rewards.models.db.users import User
from creator_rewards.services.blob_store import BlobStore, get_blob_store
from creator_rewards.services.notifications import (
    NotificationService,
    all_brand_user_ids,
    format_cents,
    notification_service,
)
from creator_rewards.utils import get_logger, log_business_event
from creator_rewards.utils.time import as_utc, utc_now

if TYPE_CHECKING:  # pragma: no cover
    from creator_rewards.services.claim_workflow import PaymentProof

logger = get_logger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits


def compute_commission(amount_cents: int, percentage: int) -> int:
    """floor(amount * percentage / 100) on non-negative integers."""
    if amount_cents <= 0 or percentage <= 0:
        return 0
    return (amount_cents * percentage) // 100


def generate_referral_code(session: Session, length: Optional[int] = None) -> str:
    length = int(length or REFERRAL_SETTINGS["code_length"])
    while True:
        code = "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))
        if session.query(User.id).filter(User.referral_code == code).first() is None:
            return code


def link_referrer(session: Session, user: User, referral_code: str) -> User:
    """Attach the referrer owning ``referral_code`` to a user being created.

    The link is immutable once set. Does not commit.
    """
    if user.referred_by_id is not None:
        raise InvalidState("Referrer is already set")
    code = referral_code.strip().upper()
    referrer = session.query(User).filter(User.referral_code == code).first()
    if referrer is None:
        raise NotFound("Unknown referral code")
    if user.id is not None and referrer.id == user.id:
        raise InvalidState("You cannot refer yourself")
    user.referred_by_id = referrer.id
    return referrer


def register_referral(
    session: Session,
    user: User,
    referral_code: str,
    *,
    notifier: Optional[NotificationService] = None,
) -> User:
    try:
        referrer = link_referrer(session, user, referral_code)
        session.commit()
    except Exception:
        session.rollback()
        raise
    log_business_event("referral_registered", {"referrer_id": referrer.id}, user_id=user.id)
    (notifier or notification_service).notify(
        referrer.id,
        NotificationType.REFERRAL_NEW_REFEREE,
        {"referee_name": user.name},
        {"referee_id": user.id},
    )
    return referrer


def on_invoice_paid(session: Session, invoice: Invoice) -> Optional[ReferralCommission]:
    """Create the pending commission for a freshly paid invoice. Does not commit."""
    creator = session.get(User, invoice.creator_id)
    if creator is None or creator.referred_by_id is None:
        return None
    existing = session.query(ReferralCommission).filter(ReferralCommission.invoice_id == invoice.id).first()
    if existing is not None:
        return existing
    referrer = session.get(User, creator.referred_by_id)
    if referrer is None:
        logger.warning("Referrer missing for paid invoice", invoice_id=invoice.id, referred_by_id=creator.referred_by_id)
        return None

    amount = compute_commission(invoice.amount_eur, referrer.referral_percentage)
    if amount <= 0:
        logger.info("Zero commission skipped", invoice_id=invoice.id, referrer_id=referrer.id)
        return None

    commission = ReferralCommission(
        referrer_id=referrer.id,
        referee_id=creator.id,
        invoice_id=invoice.id,
        amount_eur=amount,
        status=CommissionStatus.PENDING,
    )
    session.add(commission)
    session.flush()
    log_business_event(
        "referral_commission_created",
        {
            "commission_id": commission.id,
            "referrer_id": referrer.id,
            "invoice_id": invoice.id,
            "amount_eur": amount,
            "percentage": referrer.referral_percentage,
        },
        user_id=creator.id,
    )
    return commission


def notify_commission_earned(session: Session, commission: ReferralCommission, notifier: Optional[NotificationService] = None) -> None:
    referee = session.get(User, commission.referee_id)
    (notifier or notification_service).notify(
        commission.referrer_id,
        NotificationType.REFERRAL_COMMISSION_EARNED,
        {"amount": format_cents(commission.amount_eur), "referee_name": referee.name if referee else ""},
        {"commission_id": commission.id, "invoice_id": commission.invoice_id},
    )


def promote_commissions(
    session: Session,
    now: Optional[datetime] = None,
    hold_days: Optional[int] = None,
    referrer_id: Optional[int] = None,
) -> list[ReferralCommission]:
    """Release pending commissions older than the hold period."""
    now = as_utc(now) or utc_now()
    hold = int(REFERRAL_SETTINGS["pending_hold_days"] if hold_days is None else hold_days)
    cutoff = now - timedelta(days=hold)

    query = session.query(ReferralCommission).filter(ReferralCommission.status == CommissionStatus.PENDING)
    if referrer_id is not None:
        query = query.filter(ReferralCommission.referrer_id == referrer_id)
    promoted: list[ReferralCommission] = []
    try:
        for commission in query.order_by(ReferralCommission.created_at, ReferralCommission.id):
            created = as_utc(commission.created_at)
            if created is not None and created <= cutoff:
                commission.status = CommissionStatus.AVAILABLE
                commission.available_at = now
                promoted.append(commission)
        session.commit()
    except Exception:
        session.rollback()
        raise
    if promoted:
        log_business_event(
            "referral_commissions_promoted",
            {"count": len(promoted), "commission_ids": [c.id for c in promoted], "hold_days": hold},
        )
    return promoted


def _available_query(session: Session, user_id: int):
    return session.query(ReferralCommission).filter(
        ReferralCommission.referrer_id == user_id,
        ReferralCommission.status == CommissionStatus.AVAILABLE,
        ReferralCommission.referral_invoice_id.is_(None),
    )


def available_commissions(session: Session, user_id: int) -> list[ReferralCommission]:
    """Unreserved available commissions, FIFO."""
    return _available_query(session, user_id).order_by(ReferralCommission.created_at, ReferralCommission.id).all()


def available_balance(session: Session, user_id: int) -> int:
    return sum(c.amount_eur for c in available_commissions(session, user_id))


def fifo_prefix(commissions: list[ReferralCommission], amount: int) -> Optional[list[ReferralCommission]]:
    """Leading commissions summing exactly to ``amount``, or None."""
    total = 0
    prefix: list[ReferralCommission] = []
    for commission in commissions:
        if total >= amount:
            break
        total += commission.amount_eur
        prefix.append(commission)
    return prefix if total == amount else None


def request_withdrawal(
    session: Session,
    user: User,
    amount_cents: int,
    proof: PaymentProof,
    *,
    blob_store: Optional[BlobStore] = None,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> ReferralInvoice:
    if amount_cents <= 0:
        raise InvalidAmount("Withdrawal amount must be positive")
    commissions = available_commissions(session, user.id)
    balance = sum(c.amount_eur for c in commissions)
    if amount_cents > balance:
        raise InsufficientBalance(
            "Amount exceeds available balance",
            details={"available": balance, "requested": amount_cents},
        )
    consumed = fifo_prefix(commissions, amount_cents)
    if consumed is None:
        # Offer the nearest withdrawable amounts around the request
        running, lower, upper = 0, 0, balance
        for c in commissions:
            running += c.amount_eur
            if running < amount_cents:
                lower = running
            else:
                upper = running
                break
        raise InvalidAmount(
            "Amount must match whole commissions, oldest first",
            details={"nearest_lower": lower, "nearest_upper": upper},
        )

    store = blob_store or get_blob_store()
    pdf_url: Optional[str] = None
    if proof.method == PaymentMethod.INVOICE:
        pdf_url = store.store(proof.pdf, proof.filename, proof.content_type)

    referral_invoice = ReferralInvoice(
        user_id=user.id,
        payment_method=proof.method,
        pdf_url=pdf_url,
        amount_eur=amount_cents,
        status=InvoiceStatus.UPLOADED,
    )
    try:
        session.add(referral_invoice)
        session.flush()
        reserved = (
            session.query(ReferralCommission)
            .filter(
                ReferralCommission.id.in_([c.id for c in consumed]),
                ReferralCommission.status == CommissionStatus.AVAILABLE,
                ReferralCommission.referral_invoice_id.is_(None),
            )
            .update({ReferralCommission.referral_invoice_id: referral_invoice.id}, synchronize_session=False)
        )
        if reserved != len(consumed):
            raise InvalidState("Commissions changed while requesting the withdrawal")
        session.commit()
    except Exception:
        session.rollback()
        if pdf_url is not None:
            store.delete(pdf_url)
        raise

    session.refresh(referral_invoice)
    log_business_event(
        "referral_withdrawal_requested",
        {
            "referral_invoice_id": referral_invoice.id,
            "amount_eur": amount_cents,
            "commission_ids": [c.id for c in consumed],
            "payment_method": proof.method.value,
        },
        user_id=user.id,
        request_id=request_id,
    )
    (notifier or notification_service).notify_many(
        all_brand_user_ids(session),
        NotificationType.REFERRAL_INVOICE_UPLOADED,
        {"creator_name": user.name, "amount": format_cents(amount_cents)},
        {"referral_invoice_id": referral_invoice.id},
    )
    return referral_invoice


def mark_referral_invoice_paid(
    session: Session,
    referral_invoice_id: int,
    actor: User,
    *,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> ReferralInvoice:
    if actor.role not in (UserRole.BRAND, UserRole.ADMIN):
        raise Unauthorized("Only brands or operators can mark referral invoices paid")
    referral_invoice = session.get(ReferralInvoice, referral_invoice_id)
    if referral_invoice is None:
        raise NotFound("Referral invoice not found")
    if referral_invoice.status == InvoiceStatus.PAID:
        raise InvalidState("Referral invoice is already paid")

    try:
        updated = (
            session.query(ReferralInvoice)
            .filter(ReferralInvoice.id == referral_invoice_id, ReferralInvoice.status == InvoiceStatus.UPLOADED)
            .update({ReferralInvoice.status: InvoiceStatus.PAID, ReferralInvoice.paid_at: utc_now()}, synchronize_session=False)
        )
        if updated == 0:
            raise InvalidState("Referral invoice is already paid")
        consumed = (
            session.query(ReferralCommission)
            .filter(ReferralCommission.referral_invoice_id == referral_invoice_id)
            .order_by(ReferralCommission.created_at, ReferralCommission.id)
            .all()
        )
        for commission in consumed:
            commission.status = CommissionStatus.WITHDRAWN
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(referral_invoice)
    log_business_event(
        "referral_invoice_paid",
        {
            "referral_invoice_id": referral_invoice.id,
            "referrer_id": referral_invoice.user_id,
            "amount_eur": referral_invoice.amount_eur,
            "withdrawn_commissions": len(consumed),
        },
        user_id=actor.id,
        request_id=request_id,
    )
    (notifier or notification_service).notify(
        referral_invoice.user_id,
        NotificationType.REFERRAL_INVOICE_PAID,
        {"amount": format_cents(referral_invoice.amount_eur)},
        {"referral_invoice_id": referral_invoice.id},
    )
    return referral_invoice


@dataclass
class ReferralDashboard:
    referral_code: Optional[str]
    referral_percentage: int
    referee_count: int
    available_amount: int
    pending_amount: int
    reserved_amount: int
    withdrawn_amount: int
    total_earned: int


def _sum_commissions(session: Session, user_id: int, *criteria) -> int:
    value = (
        session.query(func.coalesce(func.sum(ReferralCommission.amount_eur), 0))
        .filter(ReferralCommission.referrer_id == user_id, *criteria)
        .scalar()
    )
    return int(value or 0)


def referral_dashboard(session: Session, user: User) -> ReferralDashboard:
    referee_count = session.query(func.count(User.id)).filter(User.referred_by_id == user.id).scalar() or 0
    available = _sum_commissions(
        session, user.id,
        ReferralCommission.status == CommissionStatus.AVAILABLE,
        ReferralCommission.referral_invoice_id.is_(None),
    )
    reserved = _sum_commissions(
        session, user.id,
        ReferralCommission.status == CommissionStatus.AVAILABLE,
        ReferralCommission.referral_invoice_id.is_not(None),
    )
    pending = _sum_commissions(session, user.id, ReferralCommission.status == CommissionStatus.PENDING)
    withdrawn = _sum_commissions(session, user.id, ReferralCommission.status == CommissionStatus.WITHDRAWN)
    return ReferralDashboard(
        referral_code=user.referral_code,
        referral_percentage=user.referral_percentage,
        referee_count=int(referee_count),
        available_amount=available,
        pending_amount=pending,
        reserved_amount=reserved,
        withdrawn_amount=withdrawn,
        total_earned=available + pending + reserved + withdrawn,
    )


__all__ = [
    "compute_commission",
    "generate_referral_code",
    "link_referrer",
    "register_referral",
    "on_invoice_paid",
    "notify_commission_earned",
    "promote_commissions",
    "available_commissions",
    "available_balance",
    "fifo_prefix",
    "request_withdrawal",
    "mark_referral_invoice_paid",
    "ReferralDashboard",
    "referral_dashboard",
]
