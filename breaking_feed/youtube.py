"""YouTube Data API v3 video source for Breaking Feed."""

import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests
from dateutil import parser as date_parser

from .fetch import get_bytes
from .logging_config import create_execution_logger
from .models import FeedItem, ItemType, as_utc

DEFAULT_VIDEOS_PER_CHANNEL = 3


class VideoSource:
    """Fetches the latest uploads of configured channels.

    Each channel costs two API calls: `activities` to find recent upload
    ids, then `videos` for snippets and view counts.
    """

    BASE = "https://www.googleapis.com/youtube/v3"
    WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

    def __init__(
        self,
        api_key: str,
        channel_ids: list[str],
        timeout: int = 10,
        max_results: int = DEFAULT_VIDEOS_PER_CHANNEL,
        execution_id: str | None = None,
    ):
        """Initialize the video source.

        Args:
            api_key: YouTube Data API key
            channel_ids: Channel identifiers to poll
            timeout: HTTP request timeout in seconds
            max_results: Recent activities requested per channel
            execution_id: Execution ID for logging context
        """
        self.api_key = api_key
        self.channel_ids = channel_ids
        self.timeout = timeout
        self.max_results = max_results
        self.logger = create_execution_logger("video_source", execution_id)
        self.session = requests.Session()

        self.logger.info(
            "VideoSource initialized", channel_count=len(channel_ids), timeout=timeout
        )

    def fetch_videos(self) -> list[FeedItem]:
        """Fetch all channels in parallel; failing channels yield nothing."""
        if not self.channel_ids:
            return []

        with ThreadPoolExecutor(max_workers=len(self.channel_ids)) as executor:
            results = list(executor.map(self._fetch_channel_safely, self.channel_ids))

        videos = [video for channel_videos in results for video in channel_videos]
        for video in videos:
            self.logger.debug(
                f'Video "{video.title}" [{video.video_id}] views: {video.views}',
                video_id=video.video_id,
            )
        return videos

    def _fetch_channel_safely(self, channel_id: str) -> list[FeedItem]:
        try:
            videos = self.get_latest_videos(channel_id)
        except Exception as e:
            self.logger.error(
                f"Error fetching videos for channel {channel_id}: {e}",
                channel_id=channel_id,
                error=str(e),
            )
            return []

        self.logger.log_source_fetch(channel_id, len(videos))
        return videos

    def get_latest_videos(self, channel_id: str) -> list[FeedItem]:
        """Return normalized recent uploads for one channel.

        Raises:
            requests.RequestException: If an API call fails
        """
        activities = self._get(
            "activities",
            {
                "part": "snippet,contentDetails",
                "channelId": channel_id,
                "maxResults": self.max_results,
            },
        )

        video_ids = []
        for activity in activities.get("items") or []:
            upload = (activity.get("contentDetails") or {}).get("upload") or {}
            if upload.get("videoId"):
                video_ids.append(upload["videoId"])

        if not video_ids:
            self.logger.info(
                f"No upload videos found for channel {channel_id}",
                channel_id=channel_id,
            )
            return []

        details = self._get(
            "videos", {"id": ",".join(video_ids), "part": "snippet,statistics"}
        )

        videos = []
        for raw in details.get("items") or []:
            try:
                videos.append(self.normalize_video(raw))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(
                    f"Failed to normalize video from {channel_id}: {e}",
                    channel_id=channel_id,
                    error=str(e),
                )
        return videos

    def normalize_video(self, raw: dict[str, Any]) -> FeedItem:
        """Normalize a `videos` API resource into a video item."""
        video_id = raw["id"]
        snippet = raw.get("snippet") or {}
        statistics = raw.get("statistics") or {}
        thumbnails = snippet.get("thumbnails") or {}

        image = ""
        for size in ("high", "medium", "default"):
            if (thumbnails.get(size) or {}).get("url"):
                image = thumbnails[size]["url"]
                break

        return FeedItem(
            title=snippet.get("title") or "",
            description=snippet.get("description") or "",
            url=self.WATCH_URL.format(video_id=video_id),
            image=image,
            type=ItemType.VIDEO,
            source=snippet.get("channelTitle") or "YouTube",
            timestamp=as_utc(date_parser.isoparse(snippet["publishedAt"])),
            video_id=video_id,
            views=int(statistics.get("viewCount") or 0),
        )

    def _get(self, resource: str, params: dict[str, Any]) -> dict[str, Any]:
        body = get_bytes(
            self.session,
            f"{self.BASE}/{resource}",
            self.timeout,
            params={**params, "key": self.api_key},
        )
        return json.loads(body)
