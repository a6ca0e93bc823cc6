from .users import User
from .brands import Brand
from .campaigns import Campaign
from .rewards import Reward
from .submissions import Submission, VideoStats, VideoStatsHistory
from .invoices import Invoice, RewardUnlock
from .referrals import ReferralCommission, ReferralInvoice
from .notifications import Notification

__all__ = [
    "User",
    "Brand",
    "Campaign",
    "Reward",
    "Submission",
    "VideoStats",
    "VideoStatsHistory",
    "Invoice",
    "RewardUnlock",
    "ReferralCommission",
    "ReferralInvoice",
    "Notification",
]
