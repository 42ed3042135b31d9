"""Tests for post creation, deletion and interactions."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.moderation import ModerationAction, ModerationResult
from spotlight.posts.service import (
    create_post,
    create_reply,
    delete_post,
    get_post,
    toggle_interaction,
)

REPO = "spotlight.core.repositories"


def _moderator(action=ModerationAction.ALLOW, reason=None):
    moderator = MagicMock()
    moderator.moderate = AsyncMock(return_value=ModerationResult(action, reason))
    return moderator


@pytest.fixture
def repo():
    with patch(f"{REPO}.get_post", new_callable=AsyncMock) as get_post_, \
            patch(f"{REPO}.add_post", new_callable=AsyncMock) as add_post, \
            patch(f"{REPO}.adjust_counter", new_callable=AsyncMock) as adjust, \
            patch(f"{REPO}.soft_delete_post", new_callable=AsyncMock) as soft_delete, \
            patch(f"{REPO}.find_interaction", new_callable=AsyncMock) as find, \
            patch(f"{REPO}.add_interaction", new_callable=AsyncMock) as add_interaction, \
            patch(f"{REPO}.remove_interaction", new_callable=AsyncMock) as remove, \
            patch(f"{REPO}.get_replies", new_callable=AsyncMock) as replies:
        get_post_.return_value = None
        find.return_value = None
        replies.return_value = []
        yield SimpleNamespace(
            get_post=get_post_, add_post=add_post, adjust_counter=adjust,
            soft_delete_post=soft_delete, find_interaction=find,
            add_interaction=add_interaction, remove_interaction=remove, get_replies=replies,
        )


class TestCreatePost:

    @pytest.mark.asyncio
    async def test_creates_thread_root(self, session, cache, repo):
        post = await create_post(session, "u1", "  First post  ", moderator=_moderator(), cache=cache)

        assert post.content == "First post"
        assert post.thread_id == post.id
        assert post.moderation_metadata["action"] == "ALLOW"
        repo.add_post.assert_awaited_once_with(session, post)
        repo.adjust_counter.assert_not_awaited()
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "x" * 2001])
    async def test_rejects_bad_length(self, session, cache, repo, content):
        with pytest.raises(SpotlightError) as exc:
            await create_post(session, "u1", content, moderator=_moderator(), cache=cache)
        assert exc.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_blocked_content_is_not_stored(self, session, cache, repo):
        moderator = _moderator(ModerationAction.BLOCK, "Blocked: violence/graphic")
        with pytest.raises(SpotlightError) as exc:
            await create_post(session, "u1", "gore", moderator=moderator, cache=cache)
        assert exc.value.code == ErrorCode.CONTENT_BLOCKED
        repo.add_post.assert_not_awaited()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_warned_content_is_stored(self, session, cache, repo):
        moderator = _moderator(ModerationAction.WARN, "Flagged: violence")
        post = await create_post(session, "u1", "this will kill me", moderator=moderator, cache=cache)
        assert post.moderation_metadata["action"] == "WARN"

    @pytest.mark.asyncio
    async def test_reply_inherits_thread(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("parent", thread_id="root")
        reply = await create_reply(session, "u2", "parent", "Agreed", moderator=_moderator(), cache=cache)

        assert reply.parent_id == "parent"
        assert reply.thread_id == "root"
        repo.adjust_counter.assert_awaited_once_with(session, "parent", "replies", 1)

    @pytest.mark.asyncio
    async def test_reply_to_missing_parent(self, session, cache, repo):
        with pytest.raises(SpotlightError) as exc:
            await create_reply(session, "u2", "ghost", "hello?", moderator=_moderator(), cache=cache)
        assert exc.value.code == ErrorCode.POST_NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalidates_author_feed(self, session, cache, repo):
        await cache.set("feed:u1:hybrid", [1], namespace="feeds", tags=["feeds", "feed:u1"])
        await create_post(session, "u1", "new post", moderator=_moderator(), cache=cache)
        assert await cache.get("feed:u1:hybrid", namespace="feeds") is None


class TestDeletePost:

    @pytest.mark.asyncio
    async def test_missing(self, session, cache, repo):
        with pytest.raises(SpotlightError) as exc:
            await delete_post(session, "u1", "nope", cache=cache)
        assert exc.value.code == ErrorCode.POST_NOT_FOUND

    @pytest.mark.asyncio
    async def test_only_author_can_delete(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1", author_id="someone-else")
        with pytest.raises(SpotlightError) as exc:
            await delete_post(session, "u1", "p1", cache=cache)
        assert exc.value.code == ErrorCode.FORBIDDEN
        repo.soft_delete_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_soft_deletes_reply(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1", author_id="u1", parent_id="parent")
        result = await delete_post(session, "u1", "p1", cache=cache)

        assert result == {"id": "p1", "deleted": True}
        repo.soft_delete_post.assert_awaited_once_with(session, "p1")
        repo.adjust_counter.assert_awaited_once_with(session, "parent", "replies", -1)

    @pytest.mark.asyncio
    async def test_delete_clears_every_cached_feed(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1", author_id="u1")
        await cache.set("feed:u2:hybrid:20", [{"post_id": "p1"}], namespace="feeds",
                        tags=["feeds", "feed:u2"])

        await delete_post(session, "u1", "p1", cache=cache)

        assert await cache.get("feed:u2:hybrid:20", namespace="feeds") is None


class TestInteractions:

    @pytest.mark.asyncio
    async def test_like_then_unlike(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1")

        added = await toggle_interaction(session, "u1", "p1", "LIKE", cache=cache)
        assert added == {"action": "added", "type": "LIKE"}
        repo.adjust_counter.assert_awaited_with(session, "p1", "likes", 1)

        repo.find_interaction.return_value = SimpleNamespace(id=7)
        removed = await toggle_interaction(session, "u1", "p1", "LIKE", cache=cache)
        assert removed == {"action": "removed", "type": "LIKE"}
        repo.remove_interaction.assert_awaited_once_with(session, 7)
        repo.adjust_counter.assert_awaited_with(session, "p1", "likes", -1)

    @pytest.mark.asyncio
    async def test_views_always_recorded(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1")
        repo.find_interaction.return_value = SimpleNamespace(id=7)

        result = await toggle_interaction(session, "u1", "p1", "VIEW", cache=cache)

        assert result["action"] == "added"
        repo.find_interaction.assert_not_awaited()
        repo.adjust_counter.assert_awaited_once_with(session, "p1", "views", 1)

    @pytest.mark.asyncio
    async def test_unknown_type(self, session, cache, repo):
        with pytest.raises(SpotlightError) as exc:
            await toggle_interaction(session, "u1", "p1", "BOOKMARK", cache=cache)
        assert exc.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_draft_posts_cannot_be_liked(self, session, cache, repo, make_post):
        repo.get_post.return_value = make_post("p1", visibility="DRAFT")
        with pytest.raises(SpotlightError) as exc:
            await toggle_interaction(session, "u1", "p1", "LIKE", cache=cache)
        assert exc.value.code == ErrorCode.POST_NOT_FOUND


@pytest.mark.asyncio
async def test_get_post_with_thread(session, repo, make_post):
    repo.get_post.return_value = make_post("root")
    repo.get_replies.return_value = [make_post("r1", parent_id="root", thread_id="root")]

    data = await get_post(session, "root", include_thread=True)

    assert data["id"] == "root"
    assert [r["id"] for r in data["thread"]] == ["r1"]
