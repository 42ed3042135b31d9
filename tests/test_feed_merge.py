"""Tests for blending, diversity and ranking of feed candidates."""

from collections import Counter

import pytest

from spotlight.feed.merge import blend, blend_pages, dedupe, diversify, finalize, quotas


def _pool(make_candidate, prefix, n, source, author=None):
    return [
        make_candidate(f"{prefix}{i}", author_id=author or f"{prefix}-author{i}",
                       hours_old=i + 1, source=source)
        for i in range(n)
    ]


class TestQuotas:

    @pytest.mark.parametrize("limit,expected", [
        (10, (7, 3)),
        (20, (14, 6)),
        (1, (1, 0)),
        (3, (3, 0)),
        (100, (70, 30)),
    ])
    def test_quotas(self, limit, expected):
        assert quotas(limit) == expected

    def test_quotas_never_exceed_limit(self):
        for limit in range(1, 60):
            following, discovery = quotas(limit)
            assert following + discovery <= limit


class TestBlend:

    def test_ratio_holds_with_enough_data(self, make_candidate):
        following = _pool(make_candidate, "f", 30, "following")
        discovery = _pool(make_candidate, "d", 30, "discovery")
        merged = blend(following, discovery, limit=20)
        counts = Counter(c.source for c in merged)
        assert len(merged) == 20
        assert counts["following"] == 14
        assert counts["discovery"] == 6

    def test_backfills_from_following_when_discovery_short(self, make_candidate):
        following = _pool(make_candidate, "f", 30, "following")
        discovery = _pool(make_candidate, "d", 1, "discovery")
        merged = blend(following, discovery, limit=10)
        counts = Counter(c.source for c in merged)
        assert len(merged) == 10
        assert counts == {"following": 9, "discovery": 1}

    def test_backfills_from_discovery_when_following_short(self, make_candidate):
        following = _pool(make_candidate, "f", 2, "following")
        discovery = _pool(make_candidate, "d", 30, "discovery")
        merged = blend(following, discovery, limit=10)
        counts = Counter(c.source for c in merged)
        assert counts == {"following": 2, "discovery": 8}

    def test_duplicates_are_dropped(self, make_candidate):
        shared = make_candidate("same", source="following")
        dup = make_candidate("same", source="discovery")
        merged = blend([shared], [dup], limit=10)
        assert [c.post_id for c in merged] == ["same"]
        assert merged[0].source == "following"

    def test_deleted_candidates_are_skipped(self, make_candidate):
        live = make_candidate("live")
        gone = make_candidate("gone", deleted=True)
        assert [c.post_id for c in blend([gone, live], [], limit=5)] == ["live"]

    def test_zero_limit(self, make_candidate):
        assert blend(_pool(make_candidate, "f", 3, "following"), [], limit=0) == []

    def test_result_is_sorted_by_score(self, make_candidate):
        f = make_candidate("f", source="following")
        d = make_candidate("d", source="discovery")
        f.score, d.score = 1.0, 5.0
        assert [c.post_id for c in blend([f], [d], limit=2)] == ["d", "f"]


class TestBlendPages:

    def test_every_full_page_keeps_the_ratio(self, make_candidate):
        following = _pool(make_candidate, "f", 30, "following")
        discovery = _pool(make_candidate, "d", 30, "discovery")
        for c in discovery:
            c.score = 50.0
        for c in following:
            c.score = 1.0

        ranked = blend_pages(following, discovery, page_size=10)

        for start in (0, 10, 20):
            counts = Counter(c.source for c in ranked[start:start + 10])
            assert counts == {"following": 7, "discovery": 3}

    def test_tail_pages_backfill_and_nothing_is_lost(self, make_candidate):
        following = _pool(make_candidate, "f", 12, "following")
        discovery = _pool(make_candidate, "d", 3, "discovery")
        ranked = blend_pages(following, discovery, page_size=10)
        assert len(ranked) == 15
        assert len({c.post_id for c in ranked}) == 15
        assert Counter(c.source for c in ranked[:10]) == {"following": 7, "discovery": 3}

    def test_sorted_within_each_page(self, make_candidate):
        following = _pool(make_candidate, "f", 14, "following")
        discovery = _pool(make_candidate, "d", 6, "discovery")
        for i, c in enumerate(following + discovery):
            c.score = float(i)
        ranked = blend_pages(following, discovery, page_size=10)
        for start in (0, 10):
            scores = [c.score for c in ranked[start:start + 10]]
            assert scores == sorted(scores, reverse=True)

    def test_only_deleted_left_terminates(self, make_candidate):
        gone = make_candidate("gone", deleted=True)
        assert blend_pages([gone], [], page_size=5) == []


class TestDiversity:

    def test_caps_author_after_grace(self, make_candidate):
        ranked = _pool(make_candidate, "x", 12, "following", author="x") + \
            _pool(make_candidate, "y", 3, "following", author="y")
        result = diversify(ranked, max_per_author=3, grace=10)
        counts = Counter(c.author_id for c in result)
        assert counts["x"] == 10
        assert counts["y"] == 3

    def test_no_cap_for_small_feeds(self, make_candidate):
        ranked = _pool(make_candidate, "x", 6, "following", author="x")
        assert len(diversify(ranked)) == 6


def test_dedupe_keeps_first(make_candidate):
    a = make_candidate("p1", source="following")
    b = make_candidate("p1", source="trending")
    assert dedupe([a, b]) == [a]


def test_finalize_assigns_ranks(make_candidate, now):
    items = finalize([make_candidate("a"), make_candidate("b")], now)
    assert [c.rank for c in items] == [1, 2]
    assert items[0].reasons
