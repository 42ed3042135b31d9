"""Shared fixtures for SpotlightX tests."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from spotlight.core.cache import RedisCache
from spotlight.feed.scoring import Candidate


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cache():
    """Cache that never touches Redis (connect() is not called)."""
    return RedisCache(root="test")


@pytest.fixture
def session():
    """AsyncSession stand-in; add() is synchronous on the real thing."""
    s = AsyncMock()
    s.add = MagicMock()
    return s


@pytest.fixture
def make_candidate(now):
    def _make(post_id, author_id="a1", hours_old=1.0, likes=0, replies=0, reposts=0,
              source="following", content="hello world", deleted=False):
        return Candidate(
            post_id=post_id,
            author_id=author_id,
            content=content,
            created_at=now - timedelta(hours=hours_old),
            likes=likes,
            replies=replies,
            reposts=reposts,
            source=source,
            deleted=deleted,
        )
    return _make


@pytest.fixture
def make_post(now):
    def _make(post_id, author_id="a1", hours_old=1.0, **kwargs):
        data = dict(
            id=post_id,
            author_id=author_id,
            author_type="USER",
            content=kwargs.pop("content", "post body"),
            created_at=now - timedelta(hours=hours_old),
            likes=0, reposts=0, replies=0, views=0,
            parent_id=None, quoted_post_id=None, thread_id=post_id,
            visibility="PUBLIC", deleted_at=None,
            moderation_metadata=None, content_embedding=None,
        )
        data.update(kwargs)
        return SimpleNamespace(**data)
    return _make
