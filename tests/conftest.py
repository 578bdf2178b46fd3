"""Shared fixtures for Breaking Feed tests."""

import os
from datetime import UTC, datetime, timedelta

import boto3
import pytest
from moto import mock_aws

from breaking_feed.models import FeedItem, ItemType

# moto needs credentials and a region; never talk to real AWS from tests
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

REGION = "us-east-1"
FEED_TABLE = "breaking_news"
NOTIFICATIONS_TABLE = "notifications"
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


def make_article(title="Article", url=None, minutes_ago=0, **kwargs) -> FeedItem:
    return FeedItem(
        title=title,
        description=kwargs.pop("description", f"About {title}"),
        url=url if url is not None else f"https://news.example.com/{title.lower()}",
        image=kwargs.pop("image", ""),
        type=ItemType.ARTICLE,
        source=kwargs.pop("source", "Dinamani"),
        timestamp=kwargs.pop("timestamp", NOW - timedelta(minutes=minutes_ago)),
        **kwargs,
    )


def make_video(video_id="vid1", views=0, minutes_ago=0, **kwargs) -> FeedItem:
    return FeedItem(
        title=kwargs.pop("title", f"Video {video_id}"),
        description=kwargs.pop("description", ""),
        url=f"https://www.youtube.com/watch?v={video_id}",
        image=kwargs.pop("image", f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"),
        type=ItemType.VIDEO,
        source=kwargs.pop("source", "News Channel"),
        timestamp=kwargs.pop("timestamp", NOW - timedelta(minutes=minutes_ago)),
        video_id=video_id,
        views=views,
    )


def create_tables() -> None:
    client = boto3.client("dynamodb", region_name=REGION)
    client.create_table(
        TableName=FEED_TABLE,
        KeySchema=[{"AttributeName": "fingerprint", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "fingerprint", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    client.create_table(
        TableName=NOTIFICATIONS_TABLE,
        KeySchema=[{"AttributeName": "notification_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "notification_id", "AttributeType": "S"}
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def dynamodb():
    """Mocked DynamoDB with the feed and notification tables created."""
    with mock_aws():
        create_tables()
        yield boto3.client("dynamodb", region_name=REGION)
