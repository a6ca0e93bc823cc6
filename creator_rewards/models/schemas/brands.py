"""
Pydantic schemas for brand management.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class BrandCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    website: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Maison Lumen", "website": "https://lumen.example"}
    })


class BrandRead(BaseModel):
    id: int
    name: str
    website: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
