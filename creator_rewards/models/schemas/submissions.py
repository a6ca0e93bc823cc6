"""
Pydantic schemas for video submissions.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from ..db.enums import SubmissionStatus
from .stats import VideoStatsRead


class SubmissionCreate(BaseModel):
    tiktok_video_id: str = Field(min_length=1, max_length=256)
    cover_image_url: Optional[str] = None

    @field_validator('tiktok_video_id')
    @classmethod
    def strip_video_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('tiktok_video_id cannot be blank')
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {"tiktok_video_id": "7301234567890123456"}
    })


class SubmissionRefuse(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class SubmissionRead(BaseModel):
    id: int
    campaign_id: int
    creator_id: int
    tiktok_video_id: str
    cover_image_url: Optional[str]
    status: SubmissionStatus
    submitted_at: datetime
    validated_at: Optional[datetime]
    refuse_reason: Optional[str]
    ads_code: Optional[str]
    stats: Optional[VideoStatsRead]

    model_config = ConfigDict(from_attributes=True)


class StatsRefreshRead(BaseModel):
    submission_id: int
    updated: bool
    views_before: int
    views_after: int
    milestones: list[int]

    model_config = ConfigDict(from_attributes=True)
