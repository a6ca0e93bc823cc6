"""
Pydantic schemas for video statistics.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class TikTokVideoResponse(BaseModel):
    """Raw TikTok video counters."""
    view_count: int = Field(ge=0, description="Number of views")
    like_count: int = Field(ge=0, description="Number of likes")
    comment_count: int = Field(ge=0, description="Number of comments")
    share_count: int = Field(ge=0, description="Number of shares")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "view_count": 50000,
            "like_count": 3200,
            "comment_count": 180,
            "share_count": 420
        }
    })


class VideoStatsRead(BaseModel):
    views: int
    likes: int
    comments: int
    shares: int
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)
