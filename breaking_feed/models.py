"""Data models for Breaking Feed."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ItemType(str, Enum):
    """Kind of feed item."""

    ARTICLE = "article"
    VIDEO = "video"


def as_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class FeedItem:
    """Represents a single article or video in the breaking feed."""

    title: str
    description: str
    url: str
    image: str
    type: ItemType
    timestamp: datetime
    source: str = "Unknown"
    video_id: str | None = None
    views: int = 0

    @property
    def is_video(self) -> bool:
        return self.type == ItemType.VIDEO

    def to_record(self) -> dict[str, Any]:
        """Build the persisted payload for this item.

        Video-only fields are included for videos only, so merging an
        article payload never touches them.
        """
        record: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "image": self.image,
            "type": self.type.value,
            "source": self.source or "Unknown",
            "timestamp": as_utc(self.timestamp).isoformat(),
        }
        if self.is_video:
            record["videoId"] = self.video_id
            record["views"] = self.views
        return record


@dataclass
class StoredRecord:
    """A feed item as read back from the store."""

    fingerprint: str
    type: str
    timestamp: datetime
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_attributes(cls, attributes: dict[str, Any]) -> "StoredRecord":
        return cls(
            fingerprint=attributes["fingerprint"],
            type=attributes.get("type", ""),
            timestamp=as_utc(datetime.fromisoformat(attributes["timestamp"])),
            attributes=attributes,
        )


@dataclass
class NotificationState:
    """Last video a push notification was sent for."""

    video_id: str
    title: str
    notified_at: datetime | None = None
