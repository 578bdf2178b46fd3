"""Content fingerprints used as the feed store key."""

import hashlib

from .models import FeedItem


def fingerprint(item: FeedItem) -> str:
    """Generate the deduplication key for a feed item.

    The key is a SHA256 hex digest of the first non-empty value among
    video_id, url and title, so the same logical item refetched later
    always maps to the same key.

    Args:
        item: The feed item to fingerprint

    Returns:
        64-character hex digest

    Raises:
        ValueError: If the item has no video_id, url or title
    """
    for value in (item.video_id, item.url, item.title):
        if value:
            return hashlib.sha256(value.encode("utf-8")).hexdigest()

    raise ValueError("Feed item has no video_id, url or title to fingerprint")
