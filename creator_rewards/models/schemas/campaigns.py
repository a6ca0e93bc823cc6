"""
Pydantic schemas for campaign management.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict
from ..db.enums import CampaignStatus
from .rewards import RewardCreate, RewardRead


class CampaignCreate(BaseModel):
    title: str = Field(min_length=1, max_length=512)
    description: str = Field("", max_length=10000)
    cover_image_url: Optional[str] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    rewards: List[RewardCreate] = Field(default_factory=list, description="Leave empty to use the global tiers")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "title": "Summer glow",
            "description": "Show your morning routine with our serum",
            "status": "active",
            "rewards": [
                {"views_target": 10000, "amount_eur": 1000, "allow_multiple_videos": True},
                {"views_target": 100000, "amount_eur": 5000, "allow_multiple_videos": False}
            ]
        }
    })


class CampaignRead(BaseModel):
    id: int
    brand_id: int
    title: str
    description: str
    cover_image_url: Optional[str]
    status: CampaignStatus
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CampaignReadWithRewards(CampaignRead):
    rewards: List[RewardRead] = Field(default_factory=list)
    uses_global_tiers: bool = False


class CampaignUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = Field(None, max_length=10000)
    cover_image_url: Optional[str] = None
    status: Optional[CampaignStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
