"""
Integrations package initialization.
Exports the external stats providers.
"""
from .tiktok import fetch_video_stats, TikTokFetchError

__all__ = [
    "fetch_video_stats",
    "TikTokFetchError",
]
