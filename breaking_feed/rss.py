"""RSS article source for Breaking Feed."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .fetch import get_bytes
from .logging_config import create_execution_logger
from .models import FeedItem, ItemType, as_utc

BROWSER_USER_AGENT = "Mozilla/5.0"
DEFAULT_ARTICLE_LIMIT = 20


class ImageFetcher:
    """Best-effort og:image lookup for articles without an enclosure."""

    def __init__(self, timeout: int = 10, execution_id: str | None = None):
        self.timeout = timeout
        self.logger = create_execution_logger("image_fetcher", execution_id)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": BROWSER_USER_AGENT})

    def fetch_image(self, url: str) -> str:
        """Return the og:image URL of a page, or "" on any failure."""
        try:
            self.logger.debug("Fetching image for article", feed_url=url)
            page = get_bytes(self.session, url, self.timeout)
            soup = BeautifulSoup(page, "html.parser")
            tag = soup.find("meta", attrs={"property": "og:image"})
            return (tag.get("content") or "").strip() if tag else ""
        except Exception as e:
            self.logger.warning(
                f"Failed to fetch article image {url}: {e}", feed_url=url, error=str(e)
            )
            return ""


class ArticleSource:
    """Fetches configured RSS feeds and normalizes entries into articles."""

    def __init__(
        self,
        feed_sources: dict[str, str],
        timeout: int = 10,
        limit: int = DEFAULT_ARTICLE_LIMIT,
        image_fetcher: ImageFetcher | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the article source.

        Args:
            feed_sources: Mapping of feed URL to publisher name
            timeout: HTTP request timeout in seconds
            limit: Number of most recent articles kept across all feeds
            image_fetcher: Fallback image lookup for entries without media
            execution_id: Execution ID for logging context
        """
        self.feed_sources = feed_sources
        self.timeout = timeout
        self.limit = limit
        self.logger = create_execution_logger("article_source", execution_id)
        self.image_fetcher = image_fetcher or ImageFetcher(timeout, execution_id)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": BROWSER_USER_AGENT})

        self.logger.info(
            "ArticleSource initialized", feed_count=len(feed_sources), timeout=timeout
        )

    def fetch_articles(self) -> list[FeedItem]:
        """Fetch all feeds in parallel and return the newest articles.

        A failing feed contributes no articles. Kept articles without an
        image get one from the image fetcher, also in parallel.

        Returns:
            Up to `limit` articles, newest first
        """
        feed_urls = list(self.feed_sources)
        if not feed_urls:
            return []

        self.logger.log_execution_start(feed_count=len(feed_urls))
        with ThreadPoolExecutor(max_workers=len(feed_urls)) as executor:
            results = list(executor.map(self._fetch_feed_safely, feed_urls))

        articles = [article for feed_articles in results for article in feed_articles]
        articles.sort(key=lambda a: a.timestamp, reverse=True)
        articles = articles[: self.limit]

        missing = [article for article in articles if not article.image and article.url]
        if missing:
            with ThreadPoolExecutor(max_workers=len(missing)) as executor:
                images = executor.map(
                    self.image_fetcher.fetch_image, [a.url for a in missing]
                )
                for article, image in zip(missing, images):
                    article.image = image

        self.logger.log_execution_end(success=True, total_items=len(articles))
        return articles

    def _fetch_feed_safely(self, feed_url: str) -> list[FeedItem]:
        try:
            items = self.parse_feed(feed_url)
        except Exception as e:
            self.logger.error(
                f"Failed to fetch feed {feed_url}: {e}", feed_url=feed_url, error=str(e)
            )
            return []

        self.logger.log_source_fetch(feed_url, len(items))
        return items

    def parse_feed(self, feed_url: str) -> list[FeedItem]:
        """Download and parse a single feed.

        Raises:
            requests.RequestException: If the feed download fails or runs
                past the timeout
        """
        content = get_bytes(self.session, feed_url, self.timeout)
        return self.parse_entries(content, feed_url)

    def parse_entries(self, content: bytes, feed_url: str) -> list[FeedItem]:
        """Parse feed content, dropping entries that fail to normalize."""
        feed = feedparser.parse(content)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            self.logger.warning(
                f"Feed parsing warning for {feed_url}: {feed.bozo_exception}",
                feed_url=feed_url,
            )

        source = self.feed_sources.get(feed_url) or "Unknown"
        items = []
        for entry in feed.entries:
            try:
                items.append(self.normalize_entry(entry, source))
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize entry from {feed_url}: {e}",
                    feed_url=feed_url,
                    error=str(e),
                )
        return items

    def normalize_entry(self, entry, source: str) -> FeedItem:
        """Normalize a feedparser entry into an article.

        Raises:
            ValueError: If the entry has neither a title nor a link
        """
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title and not link:
            raise ValueError("Entry has neither title nor link")

        return FeedItem(
            title=title,
            description=clean_html_content(
                entry.get("summary") or entry.get("description") or ""
            ),
            url=link,
            image=extract_media_url(entry),
            type=ItemType.ARTICLE,
            source=source,
            timestamp=entry_timestamp(entry),
        )


def entry_timestamp(entry) -> datetime:
    """Return the publication date of a feed entry.

    feedparser exposes RSS `pubDate` as `published` and Atom `updated` or
    `dc:date` as `updated`. The first parseable one wins; entries with
    neither are dated now.
    """
    for key in ("published", "updated"):
        timestamp = parse_published(entry.get(key))
        if timestamp:
            return timestamp
    return datetime.now(UTC)


def parse_published(value: str | None) -> datetime | None:
    """Parse an RSS/Atom date into UTC, or None if missing or unparseable."""
    if value:
        try:
            return as_utc(date_parser.parse(value))
        except (ValueError, TypeError, OverflowError):
            pass
    return None


def extract_media_url(entry) -> str:
    """Return the enclosure URL, else the media:content URL, else ""."""
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href") or enclosure.get("url")
        if href:
            return href

    for media in entry.get("media_content") or []:
        if media.get("url"):
            return media["url"]

    return ""


def clean_html_content(content: str) -> str:
    """Remove HTML tags from content and normalize whitespace."""
    if not content:
        return ""

    if "<" in content or ">" in content:
        soup = BeautifulSoup(content, "html.parser")
        for script in soup(["script", "style"]):
            script.decompose()
        content = soup.get_text(separator=" ")

    return " ".join(content.split())
