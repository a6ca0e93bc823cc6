from __future__ import annotations
"""SQLAlchemy models for video submissions and their stats snapshots."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, BigInteger, String, Text, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .campaigns import Campaign
    from .users import User
from sqlalchemy.sql import func
from creator_rewards.database import Base
from .enums import SubmissionStatus

class Submission(Base):
    __tablename__ = "submissions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    tiktok_video_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    cover_image_url: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[SubmissionStatus] = mapped_column(Enum(SubmissionStatus), default=SubmissionStatus.PENDING, index=True)
    submitted_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    validated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refuse_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Filled only at claim time
    ads_code: Mapped[str | None] = mapped_column(Text, nullable=True)

    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="submissions")
    creator: Mapped["User"] = relationship("User", back_populates="submissions")
    stats: Mapped["VideoStats | None"] = relationship(
        "VideoStats", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
    stats_history: Mapped[list["VideoStatsHistory"]] = relationship(
        "VideoStatsHistory", back_populates="submission", cascade="all, delete-orphan"
    )


class VideoStats(Base):
    """Latest stats snapshot (1:1 with submission), refreshed from the external feed."""
    __tablename__ = "video_stats"
    submission_id: Mapped[int] = mapped_column(Integer, ForeignKey("submissions.id"), primary_key=True)
    views: Mapped[int] = mapped_column(BigInteger, default=0)
    likes: Mapped[int] = mapped_column(BigInteger, default=0)
    comments: Mapped[int] = mapped_column(BigInteger, default=0)
    shares: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    submission: Mapped["Submission"] = relationship("Submission", back_populates="stats")


class VideoStatsHistory(Base):
    __tablename__ = "video_stats_history"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    submission_id: Mapped[int] = mapped_column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False)
    captured_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    submission: Mapped["Submission"] = relationship("Submission", back_populates="stats_history")
