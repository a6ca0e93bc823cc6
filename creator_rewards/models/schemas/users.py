"""
Pydantic schemas for user-related operations.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from ..db.enums import UserRole


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole = UserRole.CREATOR
    brand_id: Optional[int] = Field(None, validate_default=True)
    referral_code: Optional[str] = Field(None, min_length=1, max_length=32, description="Code of the referring user")

    @field_validator('brand_id')
    @classmethod
    def validate_brand_id(cls, v, info):
        role = info.data.get('role')
        if role == UserRole.BRAND and v is None:
            raise ValueError('brand_id is required for BRAND role users')
        if role != UserRole.BRAND and v is not None:
            raise ValueError('brand_id must be None for non-BRAND role users')
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Lea Martin",
            "email": "lea@example.com",
            "role": "CREATOR",
            "referral_code": "K3Z9QA"
        }
    })


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    is_active: bool
    role: UserRole
    brand_id: Optional[int]
    referral_code: Optional[str]
    referral_percentage: int
    referred_by_id: Optional[int]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserReadWithKey(UserRead):
    """Returned once at creation so the caller can store the API key."""
    api_key: Optional[str]


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_active: Optional[bool] = None
    referral_percentage: Optional[int] = Field(None, ge=0, le=100)
