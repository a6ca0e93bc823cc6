"""
Pydantic schemas for reward tiers and the per-creator reward status.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator
from ..db.enums import InvoiceStatus, PaymentMethod, RewardState


class RewardCreate(BaseModel):
    views_target: int = Field(gt=0)
    amount_eur: int = Field(ge=0, description="Reward amount in euro cents")
    allow_multiple_videos: bool = False
    label: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(json_schema_extra={
        "example": {"views_target": 100000, "amount_eur": 5000, "allow_multiple_videos": False}
    })


class RewardUpdate(BaseModel):
    views_target: Optional[int] = Field(None, gt=0)
    amount_eur: Optional[int] = Field(None, ge=0)
    allow_multiple_videos: Optional[bool] = None
    label: Optional[str] = Field(None, max_length=100)


class RewardRead(BaseModel):
    id: int
    campaign_id: Optional[int]
    views_target: int
    amount_eur: int
    allow_multiple_videos: bool
    label: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class GlobalTierSet(BaseModel):
    tiers: List[RewardCreate] = Field(min_length=1)

    @field_validator('tiers')
    @classmethod
    def validate_increasing(cls, v):
        targets = [t.views_target for t in v]
        if len(set(targets)) != len(targets):
            raise ValueError('views_target values must be unique')
        return sorted(v, key=lambda t: t.views_target)


class ClaimSummary(BaseModel):
    id: int
    status: InvoiceStatus
    payment_method: PaymentMethod
    amount_eur: int
    uploaded_at: Optional[datetime]
    paid_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class RewardStatusRead(BaseModel):
    reward_id: int
    views_target: int
    amount_eur: int
    allow_multiple_videos: bool
    label: Optional[str]
    total_views: int
    is_unlocked: bool
    state: RewardState
    anchor_submission_id: Optional[int]
    unlocked_at: Optional[datetime]
    invoice: Optional[ClaimSummary]

    model_config = ConfigDict(from_attributes=True)


class ClaimScopeItem(BaseModel):
    submission_id: int
    tiktok_video_id: str
    views: int
    ads_code: Optional[str]
