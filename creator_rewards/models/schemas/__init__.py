from .base import ResponseBase, ErrorResponse
from .users import UserCreate, UserRead, UserReadWithKey, UserUpdate
from .brands import BrandCreate, BrandRead
from .campaigns import CampaignCreate, CampaignRead, CampaignReadWithRewards, CampaignUpdate
from .rewards import (
    RewardCreate,
    RewardUpdate,
    RewardRead,
    GlobalTierSet,
    ClaimSummary,
    RewardStatusRead,
    ClaimScopeItem,
)
from .submissions import SubmissionCreate, SubmissionRefuse, SubmissionRead, StatsRefreshRead
from .stats import TikTokVideoResponse, VideoStatsRead
from .invoices import InvoiceRead
from .referral import ReferralDashboardRead, ReferralCommissionRead, ReferralInvoiceRead, RefereeRead
from .notifications import NotificationRead

__all__ = [
    # Base
    "ResponseBase",
    "ErrorResponse",

    # Users & brands
    "UserCreate",
    "UserRead",
    "UserReadWithKey",
    "UserUpdate",
    "BrandCreate",
    "BrandRead",

    # Campaigns & rewards
    "CampaignCreate",
    "CampaignRead",
    "CampaignReadWithRewards",
    "CampaignUpdate",
    "RewardCreate",
    "RewardUpdate",
    "RewardRead",
    "GlobalTierSet",
    "ClaimSummary",
    "RewardStatusRead",
    "ClaimScopeItem",

    # Submissions & stats
    "SubmissionCreate",
    "SubmissionRefuse",
    "SubmissionRead",
    "StatsRefreshRead",
    "TikTokVideoResponse",
    "VideoStatsRead",

    # Claims & referral
    "InvoiceRead",
    "ReferralDashboardRead",
    "ReferralCommissionRead",
    "ReferralInvoiceRead",
    "RefereeRead",

    # Notifications
    "NotificationRead",
]
