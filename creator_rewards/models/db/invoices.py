from __future__ import annotations
"""SQLAlchemy models for reward claims: unlock ratchet rows and invoices."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, BigInteger, String, DateTime, Enum, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .rewards import Reward
    from .submissions import Submission
    from .campaigns import Campaign
    from .users import User
from sqlalchemy.sql import func
from creator_rewards.database import Base
from .enums import InvoiceStatus, PaymentMethod


class RewardUnlock(Base):
    """First observation of a tier being reached by a creator on a campaign.

    Unlocking is a one-way ratchet: once this row exists the tier reports
    unlocked even if the live view count later drops.
    """
    __tablename__ = "reward_unlocks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    reward_id: Mapped[int] = mapped_column(Integer, ForeignKey("rewards.id"), nullable=False)
    views_at_unlock: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unlocked_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("creator_id", "campaign_id", "reward_id", name="unique_unlock_per_creator_tier"),
    )


class Invoice(Base):
    __tablename__ = "invoices"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reward_id: Mapped[int] = mapped_column(Integer, ForeignKey("rewards.id"), nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    # Anchor submission carrying the claim
    submission_id: Mapped[int] = mapped_column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.INVOICE)
    status: Mapped[InvoiceStatus] = mapped_column(Enum(InvoiceStatus), default=InvoiceStatus.UPLOADED, index=True)
    pdf_url: Mapped[str | None] = mapped_column(String, nullable=True)

    # Tier terms as they stood when the claim was filed
    amount_eur: Mapped[int] = mapped_column(Integer, nullable=False)
    views_target: Mapped[int] = mapped_column(BigInteger, nullable=False)

    uploaded_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    paid_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reward: Mapped["Reward"] = relationship("Reward")
    campaign: Mapped["Campaign"] = relationship("Campaign")
    submission: Mapped["Submission"] = relationship("Submission")
    creator: Mapped["User"] = relationship("User")

    __table_args__ = (
        # One claim per tier per creator; global tiers are claimable once per campaign
        UniqueConstraint("reward_id", "creator_id", "campaign_id", name="unique_claim_per_creator_tier"),
        CheckConstraint(
            "payment_method != 'INVOICE' OR pdf_url IS NOT NULL",
            name="invoice_method_requires_pdf"
        ),
    )
