from __future__ import annotations
"""SQLAlchemy models for referral commissions and withdrawal invoices."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .invoices import Invoice
    from .users import User
from sqlalchemy.sql import func
from creator_rewards.database import Base
from .enums import CommissionStatus, InvoiceStatus, PaymentMethod


class ReferralInvoice(Base):
    """Withdrawal request by a referrer; same lifecycle as a reward invoice."""
    __tablename__ = "referral_invoices"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.INVOICE)
    pdf_url: Mapped[str | None] = mapped_column(String, nullable=True)
    amount_eur: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(Enum(InvoiceStatus), default=InvoiceStatus.UPLOADED, index=True)
    uploaded_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    paid_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User")
    commissions: Mapped[list["ReferralCommission"]] = relationship(
        "ReferralCommission", back_populates="referral_invoice", order_by="ReferralCommission.created_at"
    )

    __table_args__ = (
        CheckConstraint("amount_eur > 0", name="referral_invoice_amount_positive"),
    )


class ReferralCommission(Base):
    __tablename__ = "referral_commissions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    referrer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    referee_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # One commission per paid source invoice
    invoice_id: Mapped[int] = mapped_column(Integer, ForeignKey("invoices.id"), nullable=False, unique=True)
    amount_eur: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[CommissionStatus] = mapped_column(Enum(CommissionStatus), default=CommissionStatus.PENDING, index=True)
    # Withdrawal that reserved this commission, if any
    referral_invoice_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("referral_invoices.id"), nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    available_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    referrer: Mapped["User"] = relationship("User", foreign_keys=[referrer_id])
    referee: Mapped["User"] = relationship("User", foreign_keys=[referee_id])
    invoice: Mapped["Invoice"] = relationship("Invoice")
    referral_invoice: Mapped["ReferralInvoice | None"] = relationship("ReferralInvoice", back_populates="commissions")

    __table_args__ = (
        CheckConstraint("amount_eur > 0", name="commission_amount_positive"),
    )
