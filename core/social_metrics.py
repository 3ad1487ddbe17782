# Live content metrics from creators' linked social accounts
import re
import requests
from typing import Optional, Dict, Any
import logging

from core.exceptions import MetricsUnavailableError
from database.models import SocialAccount, SocialPlatform, utcnow

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3"

_YOUTUBE_ID_PATTERNS = (
    re.compile(r"(?:v=|/shorts/|/embed/|youtu\.be/)([A-Za-z0-9_-]{11})"),
)


def extract_youtube_video_id(url: Optional[str]) -> Optional[str]:
    """Pull the 11-character video id out of any common YouTube URL form."""
    if not url:
        return None
    for pattern in _YOUTUBE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def engagement_rate(stats: Dict[str, int]) -> float:
    views = stats.get("views") or 0
    if views <= 0:
        return 0.0
    interactions = (stats.get("likes") or 0) + (stats.get("comments") or 0) + (stats.get("shares") or 0)
    return round(interactions / views * 100, 2)


class YouTubeMetricsClient:
    """Reads video statistics with the creator's own OAuth token"""

    def __init__(self, timeout: int = 15):
        self.timeout = timeout

    def _get(self, endpoint: str, params: Dict[str, Any], access_token: str) -> Dict[str, Any]:
        try:
            response = requests.get(
                f"{YOUTUBE_API_URL}{endpoint}",
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"YouTube API error: {e}")
            raise MetricsUnavailableError(f"YouTube API error: {e}")

        if response.status_code == 401:
            raise MetricsUnavailableError("Your YouTube connection has expired. Please relink your account.")
        if response.status_code >= 400:
            logger.error(f"YouTube API error {response.status_code}: {response.text}")
            raise MetricsUnavailableError(f"YouTube API error ({response.status_code})")
        return response.json()

    def fetch_video_stats(self, video_id: str, access_token: str) -> Dict[str, Any]:
        if not access_token:
            raise MetricsUnavailableError("Missing YouTube access token. Please relink your account.")

        channels = self._get("/channels", {"part": "id", "mine": "true"}, access_token)
        if not channels.get("items"):
            raise MetricsUnavailableError("Could not fetch your YouTube channel details.")
        my_channel_id = channels["items"][0]["id"]

        videos = self._get("/videos", {"part": "snippet,statistics", "id": video_id}, access_token)
        if not videos.get("items"):
            raise MetricsUnavailableError("Video not found on YouTube. Please check the link.")

        video = videos["items"][0]
        snippet = video.get("snippet", {})
        if snippet.get("channelId") != my_channel_id:
            raise MetricsUnavailableError(
                f"Ownership mismatch: this video belongs to channel '{snippet.get('channelTitle')}'"
            )

        stats = video.get("statistics", {})
        return {
            "views": int(stats.get("viewCount", 0)),
            "likes": int(stats.get("likeCount", 0)),
            "comments": int(stats.get("commentCount", 0)),
            "shares": 0,
            "fetched_at": utcnow().isoformat(),
        }


class SocialMetricsService:
    """Dispatches a submission to the right platform client"""

    def __init__(self, youtube: Optional[YouTubeMetricsClient] = None):
        self.youtube = youtube or YouTubeMetricsClient()

    def fetch(self, db, creator_id: str, platform: Optional[str], video_id: Optional[str], submission_url: Optional[str]) -> Dict[str, Any]:
        platform_key = (platform or "").lower()
        try:
            platform_enum = SocialPlatform(platform_key)
        except ValueError:
            raise MetricsUnavailableError(f"Metrics verification is not supported for {platform or 'unknown platform'}")

        account = db.query(SocialAccount).filter(
            SocialAccount.user_id == creator_id,
            SocialAccount.platform == platform_enum
        ).first()
        if not account:
            raise MetricsUnavailableError(f"Creator has not linked a {platform_enum.value} account")

        if platform_enum == SocialPlatform.YOUTUBE:
            resolved_id = video_id or extract_youtube_video_id(submission_url)
            if not resolved_id:
                raise MetricsUnavailableError("Could not determine the YouTube video id for this submission")
            return self.youtube.fetch_video_stats(resolved_id, account.access_token)

        # Instagram and TikTok insights need business app review
        raise MetricsUnavailableError(f"Metrics verification is not yet supported for {platform_enum.value}")


def get_social_metrics_service() -> SocialMetricsService:
    """FastAPI dependency; tests override it."""
    return SocialMetricsService()
