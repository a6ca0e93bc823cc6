"""
Brand management endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from creator_rewards.api.deps import get_db, get_current_user, require_admin
from creator_rewards.models.db import Brand, User
from creator_rewards.models.db.enums import UserRole
from creator_rewards.models.schemas.brands import BrandCreate, BrandRead
from creator_rewards.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "/",
    response_model=BrandRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create brand"
)
async def create_brand(
    payload: BrandCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BrandRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    if db.query(Brand).filter(Brand.name == payload.name).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Brand '{payload.name}' already exists"
        )
    brand = Brand(name=payload.name, website=payload.website)
    db.add(brand)
    db.commit()
    db.refresh(brand)
    log_business_event(
        event_type="brand_created",
        details={"brand_id": brand.id, "brand_name": brand.name},
        user_id=admin.id,
        request_id=request_id
    )
    return BrandRead.model_validate(brand)

@router.get("/", response_model=List[BrandRead], summary="List brands")
async def list_brands(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[BrandRead]:
    return [BrandRead.model_validate(b) for b in db.query(Brand).order_by(Brand.name).all()]

@router.get("/{brand_id}", response_model=BrandRead, summary="Get brand")
async def get_brand(
    brand_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> BrandRead:
    if current_user.role == UserRole.BRAND and current_user.brand_id != brand_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    brand = db.get(Brand, brand_id)
    if not brand:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
    return BrandRead.model_validate(brand)
