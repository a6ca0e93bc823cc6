from __future__ import annotations
"""SQLAlchemy model for reward tiers.

A row with ``campaign_id = NULL`` belongs to the platform's global default
tier set, used by every campaign that defines no tiers of its own.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, BigInteger, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .campaigns import Campaign
from sqlalchemy.sql import func
from creator_rewards.database import Base

class Reward(Base):
    __tablename__ = "rewards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    campaign_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=True, index=True)
    views_target: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_eur: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    allow_multiple_videos: Mapped[bool] = mapped_column(Boolean, default=False)
    label: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    campaign: Mapped["Campaign | None"] = relationship("Campaign", back_populates="rewards")

    __table_args__ = (
        CheckConstraint("views_target > 0", name="reward_views_target_positive"),
        CheckConstraint("amount_eur >= 0", name="reward_amount_non_negative"),
    )

    @property
    def is_global(self) -> bool:
        return self.campaign_id is None
