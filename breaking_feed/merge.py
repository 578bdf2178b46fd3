"""Merge engine combining fetched articles and videos into one feed."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .fingerprint import fingerprint
from .models import FeedItem, as_utc


@dataclass
class MergeResult:
    """Outcome of merging one cycle's fetched items."""

    new_videos: list[FeedItem] = field(default_factory=list)
    combined: list[FeedItem] = field(default_factory=list)


def merge_items(
    articles: list[FeedItem],
    videos: list[FeedItem],
    existing_fingerprints: Iterable[str],
) -> MergeResult:
    """Merge articles and videos into a single newest-first sequence.

    Only videos are filtered against the store: articles are always
    re-submitted and rely on idempotent upserts, while new_videos must
    hold exactly the videos not seen before so the notifier only ever
    considers unseen videos.

    Args:
        articles: Normalized articles fetched this cycle
        videos: Normalized videos fetched this cycle
        existing_fingerprints: Keys already present in the feed store

    Returns:
        MergeResult with new_videos (input order) and combined (sorted by
        timestamp descending, ties keep input order)
    """
    existing = set(existing_fingerprints)
    new_videos = [video for video in videos if fingerprint(video) not in existing]

    # sorted() is stable with reverse=True, equal timestamps keep input order
    combined = sorted(
        [*articles, *new_videos],
        key=lambda item: as_utc(item.timestamp),
        reverse=True,
    )

    return MergeResult(new_videos=new_videos, combined=combined)
