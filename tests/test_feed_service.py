"""Tests for FeedService paging, caching and fallbacks."""

from unittest.mock import AsyncMock, patch

import pytest

from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.feed.service import (
    FeedService,
    decode_cursor,
    encode_cursor,
    invalidate_all_feeds,
    invalidate_user_feed,
)


def _candidates(make_candidate, prefix, n, source, likes=0):
    return [
        make_candidate(f"{prefix}{i:02d}", author_id=f"{prefix}-author{i}",
                       hours_old=i + 1, likes=likes, source=source)
        for i in range(n)
    ]


@pytest.fixture
def feed_patches(now):
    """Patch candidate sources and the clock used by the feed service."""
    with patch("spotlight.feed.service.following_candidates", new_callable=AsyncMock) as following, \
            patch("spotlight.feed.service.discovery_candidates", new_callable=AsyncMock) as discovery, \
            patch("spotlight.feed.service.trending_candidates", new_callable=AsyncMock) as trending, \
            patch("spotlight.feed.service.list_current_trends", new_callable=AsyncMock) as trends, \
            patch("spotlight.feed.service.utcnow", return_value=now):
        following.return_value = []
        discovery.return_value = []
        trending.return_value = []
        trends.return_value = []
        yield {"following": following, "discovery": discovery,
               "trending": trending, "trends": trends}


class TestCursor:

    def test_roundtrip(self):
        assert decode_cursor(encode_cursor(40)) == 40

    def test_empty_cursor_is_start(self):
        assert decode_cursor(None) == 0
        assert decode_cursor("") == 0

    @pytest.mark.parametrize("bad", ["bm90IGpzb24", "e30", "eyJvIjogLTF9"])
    def test_malformed_cursor(self, bad):
        # "not json", {} and {"o": -1}
        with pytest.raises(SpotlightError) as exc:
            decode_cursor(bad)
        assert exc.value.code == ErrorCode.VALIDATION_ERROR


class TestFeedService:

    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, session, cache):
        service = FeedService(session, cache)
        with pytest.raises(SpotlightError) as exc:
            await service.get_feed("u1", feed_type="popular")
        assert exc.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 101])
    async def test_rejects_bad_limit(self, session, cache, limit):
        service = FeedService(session, cache)
        with pytest.raises(SpotlightError):
            await service.get_feed("u1", limit=limit)

    @pytest.mark.asyncio
    async def test_hybrid_mixes_sources(self, session, cache, make_candidate, feed_patches):
        feed_patches["following"].return_value = _candidates(make_candidate, "f", 20, "following")
        feed_patches["discovery"].return_value = _candidates(make_candidate, "d", 20, "discovery")

        page = await FeedService(session, cache).get_feed("u1", "hybrid", limit=10)

        assert len(page.items) == 10
        assert page.has_more is True
        assert page.next_cursor is not None
        assert [item["rank"] for item in page.items] == list(range(1, 11))
        assert {item["source"] for item in page.items} == {"following", "discovery"}

    @pytest.mark.asyncio
    async def test_hybrid_page_keeps_ratio_when_discovery_scores_higher(
            self, session, cache, make_candidate, feed_patches):
        feed_patches["following"].return_value = _candidates(make_candidate, "f", 30, "following", likes=1)
        feed_patches["discovery"].return_value = _candidates(make_candidate, "d", 30, "discovery", likes=50)
        service = FeedService(session, cache)

        first = await service.get_feed("u1", "hybrid", limit=10)
        second = await service.get_feed("u1", "hybrid", limit=10, cursor=first.next_cursor)

        for page in (first, second):
            sources = [item["source"] for item in page.items]
            assert sources.count("following") == 7
            assert sources.count("discovery") == 3
        assert not {i["post_id"] for i in first.items} & {i["post_id"] for i in second.items}

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, session, cache, make_candidate, feed_patches):
        feed_patches["following"].return_value = _candidates(make_candidate, "f", 15, "following")
        service = FeedService(session, cache)

        first = await service.get_feed("u1", "following", limit=10)
        second = await service.get_feed("u1", "following", limit=10, cursor=first.next_cursor)

        first_ids = {item["post_id"] for item in first.items}
        second_ids = {item["post_id"] for item in second.items}
        assert len(first_ids) == 10
        assert len(second_ids) == 5
        assert not first_ids & second_ids
        assert second.has_more is False
        assert second.next_cursor is None

    @pytest.mark.asyncio
    async def test_result_is_cached(self, session, cache, make_candidate, feed_patches):
        feed_patches["following"].return_value = _candidates(make_candidate, "f", 3, "following")
        service = FeedService(session, cache)

        await service.get_feed("u1", "following")
        await service.get_feed("u1", "following")
        assert feed_patches["following"].await_count == 1

        await invalidate_user_feed("u1", cache)
        await service.get_feed("u1", "following")
        assert feed_patches["following"].await_count == 2

        await invalidate_all_feeds(cache)
        await service.get_feed("u1", "following")
        assert feed_patches["following"].await_count == 3

    @pytest.mark.asyncio
    async def test_deleted_items_never_served(self, session, cache, make_candidate, feed_patches):
        feed_patches["following"].return_value = [
            make_candidate("live", source="following"),
            make_candidate("gone", source="following", deleted=True),
        ]
        page = await FeedService(session, cache).get_feed("u1", "following")
        assert [item["post_id"] for item in page.items] == ["live"]

    @pytest.mark.asyncio
    async def test_empty_following_falls_back_to_trending(self, session, cache, make_candidate,
                                                          feed_patches):
        feed_patches["trending"].return_value = _candidates(make_candidate, "t", 3, "discovery", likes=2)

        page = await FeedService(session, cache).get_feed("new-user", "hybrid")

        assert len(page.items) == 3
        _, kwargs = feed_patches["trending"].call_args
        assert kwargs["window_hours"] == 24 * 7

    @pytest.mark.asyncio
    async def test_trending_feed_applies_topic_boost(self, session, cache, make_candidate,
                                                     feed_patches):
        plain = make_candidate("plain", likes=5, source="trending", content="lunch")
        hot = make_candidate("hot", likes=5, source="trending", content="Mars landing today")
        feed_patches["trending"].return_value = [plain, hot]
        feed_patches["trends"].return_value = [type("T", (), {"topic": "mars", "velocity": 10.0})()]

        page = await FeedService(session, cache).get_feed("u1", "trending")

        assert page.items[0]["post_id"] == "hot"
        assert "Trending topic" in page.items[0]["reasons"]
