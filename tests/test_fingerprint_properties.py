"""Property-based tests for fingerprint generation."""

import hashlib
from datetime import UTC, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from breaking_feed.fingerprint import fingerprint
from breaking_feed.models import FeedItem, ItemType


def build_item(video_id=None, url="", title="", **overrides) -> FeedItem:
    fields = {
        "title": title,
        "description": "",
        "url": url,
        "image": "",
        "type": ItemType.VIDEO if video_id else ItemType.ARTICLE,
        "timestamp": datetime(2024, 1, 1, tzinfo=UTC),
        "video_id": video_id,
    }
    fields.update(overrides)
    return FeedItem(**fields)


def sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class TestFingerprintProperties:
    """Property-based tests for fingerprint()."""

    @given(
        st.text(min_size=1, max_size=50),  # video_id
        st.text(max_size=200),  # url
        st.text(max_size=100),  # title
    )
    def test_video_id_takes_priority(self, video_id, url, title):
        """The video id alone determines the fingerprint when present."""
        item = build_item(video_id=video_id, url=url, title=title)

        assert fingerprint(item) == sha256(video_id)

    @given(st.text(min_size=1, max_size=200), st.text(max_size=100))
    def test_url_used_without_video_id(self, url, title):
        item = build_item(video_id=None, url=url, title=title)

        assert fingerprint(item) == sha256(url)

    @given(st.text(min_size=1, max_size=100))
    def test_title_is_last_resort(self, title):
        item = build_item(video_id="", url="", title=title)

        assert fingerprint(item) == sha256(title)

    @given(
        st.text(min_size=1, max_size=200),  # url
        st.text(max_size=200),  # description a
        st.text(max_size=200),  # description b
        st.integers(min_value=0, max_value=10**9),  # views
    )
    def test_items_differing_in_other_fields_collide(
        self, url, description_a, description_b, views
    ):
        """Refetched items with changed non-key fields share a fingerprint."""
        first = build_item(url=url, title="Old title", description=description_a)
        second = build_item(
            url=url,
            title="New title",
            description=description_b,
            image="https://img.example.com/x.jpg",
            source="Zee Tamil",
            views=views,
            timestamp=datetime(2025, 1, 1, tzinfo=UTC),
        )

        assert fingerprint(first) == fingerprint(second)

    @given(st.text(min_size=1, max_size=100))
    def test_fingerprint_is_deterministic_hex(self, url):
        item = build_item(url=url)

        result = fingerprint(item)

        assert result == fingerprint(build_item(url=url))
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)

    def test_missing_discriminator_raises(self):
        with pytest.raises(ValueError):
            fingerprint(build_item(video_id=None, url="", title=""))
