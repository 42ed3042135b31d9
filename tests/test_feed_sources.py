"""Tests for candidate source queries and similarity ranking."""

from datetime import timedelta

import pytest

from spotlight.feed.sources import (
    following_stmt,
    public_posts_stmt,
    rank_by_similarity,
    trending_stmt,
)


def _sql(stmt):
    return str(stmt.compile()).lower()


class TestStatements:

    def test_public_posts_exclude_deleted_and_private(self):
        sql = _sql(public_posts_stmt())
        assert "deleted_at is null" in sql
        assert "visibility" in sql

    def test_following_filters_authors(self, now):
        sql = _sql(following_stmt(["a", "b"], 10, since=now - timedelta(days=1)))
        assert "author_id in" in sql
        assert "created_at >=" in sql
        assert "deleted_at is null" in sql

    def test_trending_excludes_authors(self, now):
        sql = _sql(trending_stmt(10, now, exclude_authors=["me"]))
        assert "not in" in sql
        assert "deleted_at is null" in sql

    def test_trending_without_exclusions(self, now):
        assert "not in" not in _sql(trending_stmt(10, now))


class TestSimilarity:

    def test_orders_by_cosine(self, make_post):
        posts = [
            make_post("far", content_embedding=[0.0, 1.0]),
            make_post("near", content_embedding=[1.0, 0.1]),
            make_post("mid", content_embedding=[1.0, 1.0]),
        ]
        ranked = rank_by_similarity(posts, [1.0, 0.0], limit=2)
        assert [c.post_id for c in ranked] == ["near", "mid"]
        assert all(c.source == "discovery" for c in ranked)
        assert ranked[0].similarity == pytest.approx(1.0 / (1.01 ** 0.5))

    def test_dimension_mismatch_returns_empty(self, make_post):
        posts = [make_post("p1", content_embedding=[1.0, 0.0, 0.0])]
        assert rank_by_similarity(posts, [1.0, 0.0], limit=5) == []

    def test_no_posts(self):
        assert rank_by_similarity([], [1.0], limit=5) == []
