"""
TikTok video stats integration with mock responses.
"""
import random
from typing import Dict, Any

from creator_rewards.config import MOCK_FAILURE_RATE
from creator_rewards.models.schemas.stats import TikTokVideoResponse
from creator_rewards.utils import get_logger

logger = get_logger("integration.tiktok")


class TikTokFetchError(Exception):
    """Raised when the stats provider cannot serve a video."""


def fetch_video_stats(video_id: str) -> Dict[str, Any]:
    """
    Fetch latest counters for a TikTok video (MOCK IMPLEMENTATION).

    Real implementation would call the TikTok Display API
    (``/v2/video/query/``) with the creator's OAuth token and map
    ``view_count``, ``like_count``, ``comment_count`` and ``share_count``.

    Returns a dict with views, likes, comments and shares. Raises
    ``TikTokFetchError`` on a (simulated) provider failure so the caller can
    apply retries and the circuit breaker.
    """
    logger.info("Fetching TikTok stats (mock)", video_id=video_id)

    if random.random() < MOCK_FAILURE_RATE:
        logger.warning("Simulated TikTok API failure", video_id=video_id)
        raise TikTokFetchError(f"TikTok API unavailable for video {video_id}")

    plays = random.randint(5000, 100000)
    raw = TikTokVideoResponse(
        view_count=plays,
        like_count=int(plays * random.uniform(0.03, 0.15)),
        comment_count=int(plays * random.uniform(0.002, 0.01)),
        share_count=int(plays * random.uniform(0.005, 0.03)),
    )
    stats = {
        "views": raw.view_count,
        "likes": raw.like_count,
        "comments": raw.comment_count,
        "shares": raw.share_count,
    }
    logger.info("TikTok stats fetched successfully", video_id=video_id, views=stats["views"])
    return stats


__all__ = ["fetch_video_stats", "TikTokFetchError"]
