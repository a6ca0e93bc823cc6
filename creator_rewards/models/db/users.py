from __future__ import annotations
"""SQLAlchemy model for users (creators, brand members and operators)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Boolean, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .brands import Brand
    from .submissions import Submission
from sqlalchemy.sql import func
from creator_rewards.database import Base
from .enums import UserRole

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    api_key: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.CREATOR, index=True)

    # Brand membership - only for BRAND role users
    brand_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("brands.id"), nullable=True, index=True)

    # Referral programme
    referral_code: Mapped[str | None] = mapped_column(String(6), unique=True, nullable=True)
    referral_percentage: Mapped[int] = mapped_column(Integer, default=10)
    referred_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    brand: Mapped["Brand | None"] = relationship("Brand", back_populates="users")
    submissions: Mapped[list["Submission"]] = relationship("Submission", back_populates="creator")
    referred_by: Mapped["User | None"] = relationship("User", remote_side="User.id", back_populates="referees")
    referees: Mapped[list["User"]] = relationship("User", back_populates="referred_by")

    __table_args__ = (
        CheckConstraint(
            "role != 'BRAND' OR brand_id IS NOT NULL",
            name="brand_users_must_have_brand_id"
        ),
        CheckConstraint(
            "role = 'BRAND' OR brand_id IS NULL",
            name="non_brand_users_no_brand_id"
        ),
        CheckConstraint(
            "referral_percentage >= 0 AND referral_percentage <= 100",
            name="referral_percentage_range"
        ),
    )
