"""Claim workflow: turning an unlocked tier into an invoice, then paying it.

Payment proof is a tagged variant. ``InvoiceProof`` cannot be built without a
non-empty PDF, so "file required iff method = invoice" holds by construction;
``GiftCardProof`` carries nothing.

``submit_claim`` checks, in order: anchor ownership, existing claim, unlock
(honouring the ratchet), anchor availability, ads codes for every accepted
submission in scope. An unlocked tier whose anchor was deleted or is no
longer accepted is refused with ``NoAnchorAvailable``. Only then is the PDF
uploaded, and the ads codes plus the invoice are written in a single
transaction; a failed write deletes the uploaded blob again. The unique
``(reward_id, creator_id, campaign_id)`` constraint turns a lost race into
``AlreadyClaimed``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Mapping, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from creator_rewards.config import CLAIM_SETTINGS
from creator_rewards.errors import (
    AlreadyClaimed,
    IncompleteAdsCodes,
    InvalidFileType,
    InvalidState,
    MissingFile,
    NoAnchorAvailable,
    NotFound,
    Unauthorized,
)
from creator_rewards.models.db.campaigns import Campaign
from creator_rewards.models.db.enums import (
    InvoiceStatus,
    NotificationType,
    PaymentMethod,
    SubmissionStatus,
    UserRole,
)
from creator_rewards.models.db.invoices import Invoice
from creator_rewards.models.db.rewards import Reward
from creator_rewards.models.db.submissions import Submission
from creator_rewards.models.db.users import User
from creator_rewards.services import referral_engine
from creator_rewards.services.blob_store import BlobStore, get_blob_store
from creator_rewards.services.notifications import (
    NotificationService,
    brand_user_ids,
    format_cents,
    notification_service,
)
from creator_rewards.services.reward_status import claim_scope, get_reward_status
from creator_rewards.services.tier_resolver import GlobalTierProvider
from creator_rewards.services.view_aggregator import submission_views
from creator_rewards.utils import get_logger, log_business_event
from creator_rewards.utils.time import utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class InvoiceProof:
    pdf: bytes
    filename: str = "invoice.pdf"
    content_type: str = "application/pdf"

    method: ClassVar[PaymentMethod] = PaymentMethod.INVOICE

    def __post_init__(self):
        if not self.pdf:
            raise MissingFile("A PDF invoice is required for invoice payment")
        allowed = CLAIM_SETTINGS["allowed_pdf_content_types"]
        if self.content_type not in allowed:  # type: ignore[operator]
            raise InvalidFileType(
                "Only PDF files are accepted",
                details={"content_type": self.content_type},
            )
        max_bytes = int(CLAIM_SETTINGS["max_pdf_bytes"])  # type: ignore[arg-type]
        if len(self.pdf) > max_bytes:
            raise InvalidFileType(
                "Invoice PDF is too large",
                details={"size_bytes": len(self.pdf), "max_bytes": max_bytes},
            )


@dataclass(frozen=True)
class GiftCardProof:
    method: ClassVar[PaymentMethod] = PaymentMethod.GIFT_CARD


PaymentProof = Union[InvoiceProof, GiftCardProof]


def build_payment_proof(
    method: PaymentMethod,
    pdf: Optional[bytes] = None,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> PaymentProof:
    """Gate step of the claim form: invoice needs a PDF, gift card needs nothing."""
    if method == PaymentMethod.INVOICE:
        if not pdf:
            raise MissingFile("A PDF invoice is required for invoice payment")
        return InvoiceProof(pdf=pdf, filename=filename or "invoice.pdf", content_type=content_type or "application/pdf")
    return GiftCardProof()


def missing_ads_codes(scope: list[Submission], ads_codes: Mapping[int, str]) -> list[int]:
    """Ids of accepted submissions with no usable code (supplied or stored)."""
    missing: list[int] = []
    for submission in scope:
        code = (ads_codes.get(submission.id) or submission.ads_code or "").strip()
        if not code:
            missing.append(submission.id)
    return missing


def is_campaign_owner(user: User, campaign: Campaign) -> bool:
    return user.role == UserRole.BRAND and user.brand_id is not None and user.brand_id == campaign.brand_id


def discard_upload(store: BlobStore, pdf_url: Optional[str]) -> None:
    if pdf_url is not None:
        store.delete(pdf_url)


def submit_claim(
    session: Session,
    creator: User,
    reward_id: int,
    anchor_submission_id: int,
    proof: PaymentProof,
    ads_codes: Mapping[int, str],
    campaign_id: Optional[int] = None,
    *,
    blob_store: Optional[BlobStore] = None,
    notifier: Optional[NotificationService] = None,
    global_tier_provider: Optional[GlobalTierProvider] = None,
    request_id: Optional[str] = None,
) -> Invoice:
    reward = session.get(Reward, reward_id)
    if reward is None:
        raise NotFound("Reward not found")

    # A deleted anchor is only resolvable through the campaign it was claimed on
    anchor = session.get(Submission, anchor_submission_id)
    if anchor is not None:
        if anchor.creator_id != creator.id:
            raise Unauthorized("Submission does not belong to you")
        if campaign_id is not None and anchor.campaign_id != campaign_id:
            raise NotFound("Submission not found for this campaign")
        campaign_id = anchor.campaign_id
    else:
        campaign_id = campaign_id or reward.campaign_id
        if campaign_id is None:
            raise NotFound("Submission not found")

    if reward.campaign_id not in (None, campaign_id):
        raise NotFound("Reward not found for this campaign")

    statuses = get_reward_status(session, creator.id, campaign_id, global_tier_provider)
    # Ratchet rows survive a rejected claim
    session.commit()
    entry = next((e for e in statuses if e.reward_id == reward_id), None)
    if entry is None:
        raise NotFound("Reward is not part of this campaign's tier set")
    if entry.invoice is not None:
        raise AlreadyClaimed("This reward has already been claimed")
    if not entry.is_unlocked:
        raise InvalidState(
            "Reward tier is not unlocked",
            details={"total_views": entry.total_views, "views_target": entry.views_target},
        )
    if entry.anchor_submission_id is None or anchor is None or anchor.status != SubmissionStatus.ACCEPTED:
        logger.warning(
            "Claim rejected: no accepted anchor",
            creator_id=creator.id,
            reward_id=reward_id,
            campaign_id=campaign_id,
            requested_anchor_id=anchor_submission_id,
            candidate_anchor_id=entry.anchor_submission_id,
        )
        raise NoAnchorAvailable(
            "No accepted submission can carry this claim",
            details={"anchor_submission_id": entry.anchor_submission_id},
        )
    if (
        not entry.allow_multiple_videos
        and anchor.id != entry.anchor_submission_id
        and submission_views(anchor) < entry.views_target
    ):
        raise InvalidState(
            "This video did not reach the tier on its own",
            details={"anchor_submission_id": entry.anchor_submission_id},
        )

    scope = claim_scope(session, creator.id, campaign_id)
    missing = missing_ads_codes(scope, ads_codes)
    if missing:
        raise IncompleteAdsCodes(missing)

    store = blob_store or get_blob_store()
    pdf_url: Optional[str] = None
    if isinstance(proof, InvoiceProof):
        pdf_url = store.store(proof.pdf, proof.filename, proof.content_type)

    instant = isinstance(proof, GiftCardProof) and bool(CLAIM_SETTINGS["instant_gift_card_payment"])
    invoice = Invoice(
        reward_id=reward_id,
        campaign_id=campaign_id,
        submission_id=anchor.id,
        creator_id=creator.id,
        payment_method=proof.method,
        status=InvoiceStatus.PAID if instant else InvoiceStatus.UPLOADED,
        pdf_url=pdf_url,
        amount_eur=entry.amount_eur,
        views_target=entry.views_target,
        paid_at=utc_now() if instant else None,
    )

    commission = None
    try:
        for submission in scope:
            supplied = (ads_codes.get(submission.id) or "").strip()
            if supplied:
                submission.ads_code = supplied
        session.add(invoice)
        session.flush()
        if instant:
            commission = referral_engine.on_invoice_paid(session, invoice)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        discard_upload(store, pdf_url)
        logger.warning(
            "Concurrent claim rejected by unique constraint",
            creator_id=creator.id,
            reward_id=reward_id,
            campaign_id=campaign_id,
            error=str(e),
        )
        raise AlreadyClaimed("This reward has already been claimed") from e
    except Exception:
        session.rollback()
        discard_upload(store, pdf_url)
        logger.error(
            "Claim persistence failed",
            creator_id=creator.id,
            reward_id=reward_id,
            pdf_url=pdf_url,
            exc_info=True,
        )
        raise

    session.refresh(invoice)
    log_business_event(
        "claim_submitted",
        {
            "invoice_id": invoice.id,
            "reward_id": reward_id,
            "campaign_id": campaign_id,
            "anchor_submission_id": anchor.id,
            "payment_method": proof.method.value,
            "amount_eur": invoice.amount_eur,
            "scope_size": len(scope),
        },
        user_id=creator.id,
        request_id=request_id,
    )

    sink = notifier or notification_service
    campaign = session.get(Campaign, campaign_id)
    payload = {
        "creator_name": creator.name,
        "campaign_title": campaign.title if campaign else "",
        "amount": format_cents(invoice.amount_eur),
    }
    data = {"invoice_id": invoice.id, "campaign_id": campaign_id, "reward_id": reward_id}
    if campaign is not None:
        sink.notify_many(brand_user_ids(session, campaign.brand_id), NotificationType.INVOICE_UPLOADED, payload, data)
    if commission is not None:
        referral_engine.notify_commission_earned(session, commission, sink)
    return invoice


def can_settle(actor: User, invoice: Invoice) -> bool:
    if actor.role == UserRole.ADMIN:
        return True
    return is_campaign_owner(actor, invoice.campaign)


def mark_paid(
    session: Session,
    invoice_id: int,
    actor: User,
    *,
    notifier: Optional[NotificationService] = None,
    request_id: Optional[str] = None,
) -> Invoice:
    invoice = session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound("Invoice not found")
    if not can_settle(actor, invoice):
        raise Unauthorized("Only the campaign's brand or an operator can mark this invoice paid")
    if invoice.status == InvoiceStatus.PAID:
        raise InvalidState("Invoice is already paid")

    commission = None
    try:
        updated = (
            session.query(Invoice)
            .filter(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.UPLOADED)
            .update({Invoice.status: InvoiceStatus.PAID, Invoice.paid_at: utc_now()}, synchronize_session=False)
        )
        if updated == 0:
            raise InvalidState("Invoice is already paid")
        session.expire(invoice)
        commission = referral_engine.on_invoice_paid(session, invoice)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(invoice)
    log_business_event(
        "invoice_paid",
        {
            "invoice_id": invoice.id,
            "creator_id": invoice.creator_id,
            "campaign_id": invoice.campaign_id,
            "amount_eur": invoice.amount_eur,
            "commission_id": commission.id if commission is not None else None,
        },
        user_id=actor.id,
        request_id=request_id,
    )

    sink = notifier or notification_service
    sink.notify(
        invoice.creator_id,
        NotificationType.INVOICE_PAID,
        {"campaign_title": invoice.campaign.title, "amount": format_cents(invoice.amount_eur)},
        {"invoice_id": invoice.id, "campaign_id": invoice.campaign_id},
    )
    if commission is not None:
        referral_engine.notify_commission_earned(session, commission, sink)
    return invoice


__all__ = [
    "InvoiceProof",
    "GiftCardProof",
    "PaymentProof",
    "build_payment_proof",
    "missing_ads_codes",
    "is_campaign_owner",
    "discard_upload",
    "submit_claim",
    "can_settle",
    "mark_paid",
]
