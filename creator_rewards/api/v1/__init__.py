"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import brands, campaigns, invoices, notifications, referral, rewards, submissions, users

api_router = APIRouter()

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"]
)

api_router.include_router(
    brands.router,
    prefix="/brands",
    tags=["brands"]
)

api_router.include_router(
    campaigns.router,
    prefix="/campaigns",
    tags=["campaigns"]
)

api_router.include_router(
    rewards.router,
    tags=["rewards"]
)

api_router.include_router(
    submissions.router,
    prefix="/submissions",
    tags=["submissions"]
)

api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["invoices"]
)

api_router.include_router(
    referral.router,
    prefix="/referral",
    tags=["referral"]
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"]
)
