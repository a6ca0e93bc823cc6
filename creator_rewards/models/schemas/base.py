"""
Base schemas used across the application.
"""
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResponseBase(BaseModel):
    """Base response format for API endpoints with an optional arbitrary data payload."""
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ErrorResponse(BaseModel):
    """Body returned for every domain error (see ``creator_rewards.errors``)."""
    success: bool = False
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": False,
            "code": "INCOMPLETE_ADS_CODES",
            "message": "Missing ads codes for 1 accepted video(s)",
            "details": {"missing_submission_ids": [42]},
            "request_id": "3f2b9c1e-...",
        }
    })
