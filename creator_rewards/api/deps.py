"""
Dependencies for authentication, database sessions, and common validations.
"""
from typing import Generator, List
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from creator_rewards.database import SessionLocal
from creator_rewards.models.db import User, Campaign
from creator_rewards.models.db.enums import CampaignStatus, UserRole
from creator_rewards.utils import get_logger

logger = get_logger(__name__)
security = HTTPBearer()

def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Ensures proper session lifecycle management with automatic cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()

def _key_prefix(api_key: str) -> str:
    return api_key[:10] + "..." if len(api_key) > 10 else api_key

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Extract and validate user from API key.

    Raises:
        HTTPException: If API key is invalid or user is inactive
    """
    api_key = credentials.credentials

    user = db.query(User).filter(
        User.api_key == api_key,
        User.is_active == True  # noqa: E712
    ).first()

    if not user:
        logger.warning(
            "Authentication failed: invalid or inactive API key",
            api_key_prefix=_key_prefix(api_key)
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(
        "User authenticated successfully",
        user_id=user.id,
        user_role=user.role.value
    )
    return user

def require_role(allowed_roles: List[UserRole]):
    """
    Factory function to create a dependency that requires specific user roles.
    """
    def role_dependency(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            logger.warning(
                "Access denied: insufficient role",
                user_id=current_user.id,
                user_role=current_user.role.value,
                required_roles=[role.value for role in allowed_roles]
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_dependency

def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Dependency that requires ADMIN role."""
    if current_user.role != UserRole.ADMIN:
        logger.warning(
            "Access denied: admin required",
            user_id=current_user.id,
            user_role=current_user.role.value
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user

get_current_creator = require_role([UserRole.CREATOR])

def get_current_brand_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Dependency that returns a BRAND user (always attached to a brand)."""
    if current_user.role != UserRole.BRAND or current_user.brand_id is None:
        logger.warning(
            "Access denied: brand role required",
            user_id=current_user.id,
            user_role=current_user.role.value
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Brand access required"
        )
    return current_user

def get_visible_campaign(campaign_id: int, db: Session = Depends(get_db)) -> Campaign:
    """Fetch a campaign that has not been deleted, or 404."""
    campaign = db.get(Campaign, campaign_id)
    if not campaign or campaign.status == CampaignStatus.DELETED:
        logger.warning("Campaign not found", campaign_id=campaign_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign not found"
        )
    return campaign

def get_owned_campaign(
    campaign_id: int,
    current_user: User = Depends(require_role([UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> Campaign:
    """Fetch a campaign and enforce brand ownership.

    Access rules:
      * ADMIN: any campaign
      * BRAND: only campaigns whose brand_id matches the user's brand_id
    """
    campaign = get_visible_campaign(campaign_id, db)
    if current_user.role == UserRole.BRAND and current_user.brand_id != campaign.brand_id:
        logger.warning(
            "Brand access denied for campaign",
            user_id=current_user.id,
            campaign_id=campaign_id,
            user_brand_id=current_user.brand_id,
            campaign_brand_id=campaign.brand_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Access denied"
        )
    return campaign

def get_pagination_params(
    limit: int = 50,
    offset: int = 0
) -> dict:
    """
    Validate and return pagination parameters.

    Raises:
        HTTPException: If parameters are invalid
    """
    if limit < 1 or limit > 500:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Limit must be between 1 and 500"
        )

    if offset < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Offset must be >= 0"
        )

    return {"limit": limit, "offset": offset}
