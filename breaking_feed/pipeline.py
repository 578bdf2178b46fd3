"""One breaking-feed update cycle: fetch, merge, store, notify."""

from dataclasses import asdict, dataclass, field

from .config import PipelineConfig
from .logging_config import create_execution_logger
from .merge import merge_items
from .notifier import Notifier
from .rss import ArticleSource
from .store import BoundedStore
from .youtube import VideoSource


@dataclass
class CycleReport:
    """Counters for one cycle, filled in as the cycle progresses."""

    articles_fetched: int = 0
    videos_fetched: int = 0
    new_videos: int = 0
    articles_purged: int = 0
    items_upserted: int = 0
    items_evicted: int = 0
    notifications_sent: int = 0
    notified_video_id: str | None = None
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


class BreakingFeedPipeline:
    """Runs update cycles against the feed store.

    Store transactions run strictly in order: optional article purge,
    upsert, retention, then the notification state write. A StoreError
    aborts the cycle before notifying; a NotificationError leaves the
    committed store changes in place.
    """

    def __init__(
        self,
        config: PipelineConfig,
        article_source: ArticleSource | None = None,
        video_source: VideoSource | None = None,
        store: BoundedStore | None = None,
        notifier: Notifier | None = None,
        firebase_app=None,
        execution_id: str | None = None,
    ):
        self.config = config
        self.logger = create_execution_logger("pipeline", execution_id)
        self.article_source = article_source or ArticleSource(
            config.feed_sources,
            timeout=config.fetch_timeout,
            limit=config.article_limit,
            execution_id=execution_id,
        )
        self.video_source = video_source or VideoSource(
            config.youtube_api_key,
            config.channel_ids,
            timeout=config.fetch_timeout,
            max_results=config.videos_per_channel,
            execution_id=execution_id,
        )
        self.store = store or BoundedStore(
            config.feed_table, config.aws_region, execution_id=execution_id
        )
        self.notifier = notifier or Notifier(
            config.notifications_table,
            topic=config.topic,
            aws_region=config.aws_region,
            firebase_app=firebase_app,
            execution_id=execution_id,
        )
        self.report = CycleReport()

    def run(self) -> CycleReport:
        """Run one cycle.

        Returns:
            The cycle report

        Raises:
            StoreError: If a store transaction fails
            NotificationError: If the notification step fails
        """
        self.report = CycleReport()
        self.logger.log_execution_start(replace_articles=self.config.replace_articles)

        self.logger.info("Fetching articles")
        articles = self.article_source.fetch_articles()
        self.report.articles_fetched = len(articles)

        self.logger.info("Fetching videos")
        videos = self.video_source.fetch_videos()
        self.report.videos_fetched = len(videos)

        result = merge_items(articles, videos, self.store.existing_fingerprints())
        self.report.new_videos = len(result.new_videos)
        self.logger.info(
            f"New unique videos to insert: {len(result.new_videos)} "
            f"(out of {len(videos)})"
        )

        if self.config.replace_articles:
            self.report.articles_purged = self.store.purge_articles()

        self.report.items_upserted = self.store.upsert(result.combined)
        self.logger.info(
            f"Updated feed with {len(articles)} articles + "
            f"{len(result.new_videos)} new videos"
        )

        self.report.items_evicted = self.store.enforce_retention(self.config.max_items)

        notified = self.notifier.notify_top_video(result.new_videos)
        if notified is not None:
            self.report.notifications_sent = 1
            self.report.notified_video_id = notified.video_id

        self.logger.log_execution_end(success=True, metrics=self.report.as_dict())
        return self.report
