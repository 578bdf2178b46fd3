"""Configuration management for Breaking Feed."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .notifier import DEFAULT_TOPIC
from .rss import DEFAULT_ARTICLE_LIMIT
from .store import DEFAULT_MAX_ITEMS
from .youtube import DEFAULT_VIDEOS_PER_CHANNEL


@dataclass
class PipelineConfig:
    """Everything one update cycle needs, passed in at construction."""

    feed_sources: dict[str, str]
    channel_ids: list[str]
    youtube_api_key: str
    feed_table: str = "breaking_news"
    notifications_table: str = "notifications"
    topic: str = DEFAULT_TOPIC
    aws_region: str = "us-east-1"
    fetch_timeout: int = 10
    article_limit: int = DEFAULT_ARTICLE_LIMIT
    videos_per_channel: int = DEFAULT_VIDEOS_PER_CHANNEL
    max_items: int = DEFAULT_MAX_ITEMS
    replace_articles: bool = False


class Config:
    """Main configuration manager."""

    FEEDS_FILE = "feeds.json"

    DEFAULT_FEED_SOURCES = {
        "https://www.puthiyathalaimurai.com/feed": "Puthiya Thalaimurai",
        "https://beta.dinamani.com/api/v1/collections/latest-news.rss": "Dinamani",
        "https://zeenews.india.com/tamil/tamil-nadu.xml": "Zee Tamil",
    }

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.feeds_file = os.getenv("FEEDS_FILE", self.FEEDS_FILE)
        self.channel_ids_raw = os.getenv("CHANNEL_IDS", "")
        self.youtube_api_key = os.getenv("YT_API_KEY", "")
        self.youtube_secret_name = os.getenv("YT_API_KEY_SECRET_NAME", "")
        self.firebase_service_account = os.getenv("FIREBASE_SERVICE_ACCOUNT", "")
        self.firebase_secret_name = os.getenv("FIREBASE_SECRET_NAME", "")
        self.feed_table = os.getenv("FEED_TABLE", "breaking_news")
        self.notifications_table = os.getenv("NOTIFICATIONS_TABLE", "notifications")
        self.topic = os.getenv("FCM_TOPIC", DEFAULT_TOPIC)
        self.replace_articles = os.getenv("REPLACE_ARTICLES", "false").strip().lower() in (
            "1",
            "true",
            "yes",
        )
        self.fetch_timeout = int(os.getenv("FETCH_TIMEOUT", "10"))
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )

    def get_feed_sources(self) -> dict[str, str]:
        """Get the feed URL to source name mapping.

        Reads enabled feeds from the feeds file when present, otherwise
        falls back to the built-in defaults.

        Raises:
            ValueError: If the feeds file is invalid or has no enabled feeds
        """
        feeds_file = Path(self.feeds_file)
        if not feeds_file.exists():
            return dict(self.DEFAULT_FEED_SOURCES)

        try:
            with open(feeds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in feeds file: {e}") from e

        sources = {
            feed["url"].strip(): (feed.get("source") or "Unknown").strip()
            for feed in data.get("feeds", [])
            if feed.get("enabled", True) and feed.get("url")
        }
        if not sources:
            raise ValueError(f"No enabled feeds found in {self.feeds_file}")

        return sources

    def get_channel_ids(self) -> list[str]:
        """Get YouTube channel ids from the comma separated CHANNEL_IDS."""
        return [c.strip() for c in self.channel_ids_raw.split(",") if c.strip()]

    def get_pipeline_config(self, youtube_api_key: str | None = None) -> PipelineConfig:
        """Build the pipeline configuration.

        Args:
            youtube_api_key: Key resolved from Secrets Manager, overriding
                YT_API_KEY
        """
        return PipelineConfig(
            feed_sources=self.get_feed_sources(),
            channel_ids=self.get_channel_ids(),
            youtube_api_key=youtube_api_key or self.youtube_api_key,
            feed_table=self.feed_table,
            notifications_table=self.notifications_table,
            topic=self.topic,
            aws_region=self.aws_region,
            fetch_timeout=self.fetch_timeout,
            replace_articles=self.replace_articles,
        )
