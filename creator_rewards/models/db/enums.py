"""Central Enum definitions for core domain states.

These replace scattered string literals to ensure consistency across
DB models, schemas, and business logic.
"""
from __future__ import annotations
import enum


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    DELETED = "deleted"


class UserRole(str, enum.Enum):
    CREATOR = "CREATOR"
    BRAND = "BRAND"
    ADMIN = "ADMIN"


class SubmissionStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REFUSED = "refused"


class InvoiceStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    INVOICE = "invoice"
    GIFT_CARD = "gift_card"


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    WITHDRAWN = "withdrawn"


class RewardState(str, enum.Enum):
    """Derived per-tier claim state (never persisted)."""
    LOCKED = "locked"
    UNLOCKED_UNCLAIMED = "unlocked_unclaimed"
    CLAIM_UPLOADED = "claim_uploaded"
    CLAIM_PAID = "claim_paid"


class NotificationType(str, enum.Enum):
    SUBMISSION_ACCEPTED = "submission_accepted"
    SUBMISSION_REFUSED = "submission_refused"
    NEW_SUBMISSION = "new_submission"
    INVOICE_UPLOADED = "invoice_uploaded"
    INVOICE_PAID = "invoice_paid"
    MILESTONE_REACHED = "milestone_reached"
    REFERRAL_NEW_REFEREE = "referral_new_referee"
    REFERRAL_COMMISSION_EARNED = "referral_commission_earned"
    REFERRAL_INVOICE_UPLOADED = "referral_invoice_uploaded"
    REFERRAL_INVOICE_PAID = "referral_invoice_paid"


__all__ = [
    "CampaignStatus",
    "UserRole",
    "SubmissionStatus",
    "InvoiceStatus",
    "PaymentMethod",
    "CommissionStatus",
    "RewardState",
    "NotificationType",
]
