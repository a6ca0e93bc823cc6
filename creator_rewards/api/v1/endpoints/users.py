"""
User management endpoints (creators, brand members, operators).
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import time
import secrets
import string
from creator_rewards.api.deps import get_db, get_current_user, require_admin, get_pagination_params
from creator_rewards.config import REFERRAL_SETTINGS
from creator_rewards.errors import RewardsError
from creator_rewards.models.db import User, Brand
from creator_rewards.models.db.enums import NotificationType, UserRole
from creator_rewards.models.schemas.users import UserCreate, UserRead, UserReadWithKey, UserUpdate
from creator_rewards.services import referral_engine
from creator_rewards.services.notifications import notification_service
from creator_rewards.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

def generate_api_key() -> str:
    """Generate a secure API key."""
    alphabet = string.ascii_letters + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(32))

@router.post(
    "/",
    response_model=UserReadWithKey,
    status_code=status.HTTP_201_CREATED,
    summary="Create new user",
    description="Register a creator or brand member; creators may pass a referral code"
)
async def create_user(
    user_data: UserCreate,
    request: Request,
    db: Session = Depends(get_db)
) -> UserReadWithKey:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "User creation started",
        user_role=user_data.role.value,
        brand_id=user_data.brand_id,
        has_referral_code=bool(user_data.referral_code),
        request_id=request_id
    )

    try:
        if user_data.role == UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operator accounts cannot be self-registered"
            )
        if user_data.role == UserRole.BRAND and user_data.brand_id:
            if not db.get(Brand, user_data.brand_id):
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Brand with ID {user_data.brand_id} not found"
                )

        existing_email = db.query(User).filter(User.email == user_data.email).first()
        if existing_email:
            logger.warning(
                "User creation failed: duplicate email",
                existing_user_id=existing_email.id,
                request_id=request_id
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"User with email '{user_data.email}' already exists"
            )

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            api_key=generate_api_key(),
            role=user_data.role,
            brand_id=user_data.brand_id,
            referral_code=referral_engine.generate_referral_code(db),
            referral_percentage=REFERRAL_SETTINGS["default_percentage"],
        )
        referrer = None
        if user_data.referral_code:
            referrer = referral_engine.link_referrer(db, new_user, user_data.referral_code)

        db.add(new_user)
        db.commit()
        db.refresh(new_user)

        log_business_event(
            event_type="user_created",
            details={
                "user_role": new_user.role.value,
                "brand_id": new_user.brand_id,
                "referrer_id": referrer.id if referrer else None,
            },
            user_id=new_user.id,
            request_id=request_id
        )
        if referrer is not None:
            notification_service.notify(
                referrer.id,
                NotificationType.REFERRAL_NEW_REFEREE,
                {"referee_name": new_user.name},
                {"referee_id": new_user.id},
            )

        log_performance(
            operation="create_user",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"user_id": new_user.id, "role": new_user.role.value}
        )
        return UserReadWithKey.model_validate(new_user)

    except (HTTPException, RewardsError):
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(
            "User creation failed: database integrity error",
            error=str(e),
            request_id=request_id,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User could not be created due to a conflicting record"
        )
    except Exception as e:
        db.rollback()
        logger.error(
            "User creation failed: unexpected error",
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during user creation"
        )

@router.get(
    "/me",
    response_model=UserRead,
    summary="Current user profile"
)
async def read_me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(current_user)

@router.get(
    "/",
    response_model=List[UserRead],
    summary="List users",
    description="Operator-only listing with optional role filter"
)
async def list_users(
    role: Optional[UserRole] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[UserRead]:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    users = query.order_by(User.id).offset(pagination["offset"]).limit(pagination["limit"]).all()
    return [UserRead.model_validate(u) for u in users]

@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Update user",
    description="Operator-only: rename, deactivate or change the referral percentage"
)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    log_business_event(
        event_type="user_updated",
        details={"target_user_id": user.id, "fields": sorted(changes)},
        user_id=admin.id,
        request_id=request_id
    )
    return UserRead.model_validate(user)
