"""Unit tests for the DynamoDB-backed bounded store."""

from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError
from conftest import FEED_TABLE, REGION, make_article, make_video

from breaking_feed.fingerprint import fingerprint
from breaking_feed.store import MAX_TRANSACTION_ITEMS, BoundedStore, StoreError


def stored_items(client) -> dict[str, dict]:
    response = client.scan(TableName=FEED_TABLE)
    return {item["fingerprint"]["S"]: item for item in response["Items"]}


class TestBoundedStoreUpsert:
    """Tests for BoundedStore.upsert()."""

    def test_upsert_creates_records(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        article = make_article(title="Rain")
        video = make_video(video_id="abc", views=42)

        written = store.upsert([article, video])

        items = stored_items(dynamodb)
        assert written == 2
        assert set(items) == {fingerprint(article), fingerprint(video)}

        stored_video = items[fingerprint(video)]
        assert stored_video["type"]["S"] == "video"
        assert stored_video["videoId"]["S"] == "abc"
        assert stored_video["views"]["N"] == "42"

        stored_article = items[fingerprint(article)]
        assert stored_article["type"]["S"] == "article"
        assert stored_article["source"]["S"] == "Dinamani"
        assert "videoId" not in stored_article
        assert "views" not in stored_article

    def test_upsert_is_idempotent(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        article = make_article(title="Flood")

        store.upsert([article])
        store.upsert([article])

        assert list(stored_items(dynamodb)) == [fingerprint(article)]

    def test_upsert_merges_into_existing_record(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        article = make_article(title="Election", description="first")
        key = fingerprint(article)
        dynamodb.put_item(
            TableName=FEED_TABLE,
            Item={
                "fingerprint": {"S": key},
                "title": {"S": "Election"},
                "pinned": {"BOOL": True},
                "timestamp": {"S": article.timestamp.isoformat()},
            },
        )

        article.description = "updated"
        store.upsert([article])

        item = stored_items(dynamodb)[key]
        assert item["pinned"] == {"BOOL": True}
        assert item["description"]["S"] == "updated"

    def test_duplicate_fingerprints_in_batch_collapse(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        first = make_article(title="Same", url="https://x.example.com/a")
        second = make_article(
            title="Same again", url="https://x.example.com/a", source="Zee Tamil"
        )

        written = store.upsert([first, second])

        items = stored_items(dynamodb)
        assert written == 1
        assert items[fingerprint(first)]["source"]["S"] == "Zee Tamil"

    def test_empty_upsert_is_noop(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)

        assert store.upsert([]) == 0
        assert stored_items(dynamodb) == {}

    def test_oversized_batch_rejected_before_writing(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        articles = [
            make_article(title=f"a{i}") for i in range(MAX_TRANSACTION_ITEMS + 1)
        ]

        with pytest.raises(StoreError):
            store.upsert(articles)

        assert stored_items(dynamodb) == {}

    def test_failed_transaction_leaves_store_unchanged(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        kept = make_article(title="Kept")
        store.upsert([kept])

        error = ClientError(
            {"Error": {"Code": "TransactionCanceledException", "Message": "boom"}},
            "TransactWriteItems",
        )
        with patch.object(store.client, "transact_write_items", side_effect=error):
            with pytest.raises(StoreError) as exc_info:
                store.upsert([make_article(title="Lost")])

        assert exc_info.value.action == "upsert"
        assert list(stored_items(dynamodb)) == [fingerprint(kept)]

    def test_missing_table_raises_store_error(self, dynamodb):
        store = BoundedStore("no-such-table", REGION)

        with pytest.raises(StoreError):
            store.upsert([make_article(title="Nowhere")])

        with pytest.raises(StoreError):
            store.existing_fingerprints()


class TestBoundedStoreRetention:
    """Tests for retention and article purging."""

    def test_retention_keeps_most_recent(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        articles = [make_article(title=f"a{i}", minutes_ago=i) for i in range(35)]
        store.upsert(articles)

        deleted = store.enforce_retention(30)

        remaining = set(stored_items(dynamodb))
        assert deleted == 5
        assert remaining == {fingerprint(a) for a in articles[:30]}

    def test_retention_noop_under_cap(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        store.upsert([make_article(title=f"a{i}", minutes_ago=i) for i in range(30)])

        assert store.enforce_retention(30) == 0
        assert len(stored_items(dynamodb)) == 30

    def test_retention_orders_mixed_types(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        newest_video = make_video(video_id="v-new", minutes_ago=0)
        old_article = make_article(title="old", minutes_ago=60)
        mid_article = make_article(title="mid", minutes_ago=30)
        store.upsert([old_article, newest_video, mid_article])

        store.enforce_retention(2)

        assert set(stored_items(dynamodb)) == {
            fingerprint(newest_video),
            fingerprint(mid_article),
        }

    def test_records_sorted_newest_first(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        store.upsert([make_article(title=f"a{i}", minutes_ago=i) for i in (3, 1, 2)])

        titles = [r.attributes["title"] for r in store.records()]

        assert titles == ["a1", "a2", "a3"]

    def test_purge_articles_keeps_videos(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        video = make_video(video_id="keep-me")
        store.upsert([make_article(title="x"), make_article(title="y"), video])

        purged = store.purge_articles()

        assert purged == 2
        assert list(stored_items(dynamodb)) == [fingerprint(video)]

    def test_existing_fingerprints(self, dynamodb):
        store = BoundedStore(FEED_TABLE, REGION)
        items = [make_article(title="one"), make_video(video_id="two")]
        store.upsert(items)

        assert store.existing_fingerprints() == {fingerprint(i) for i in items}
