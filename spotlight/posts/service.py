"""Post creation, soft deletion, threads and interactions."""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core import repositories as repo
from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.models import AuthorType, InteractionType, Post, Visibility, new_id
from spotlight.moderation import ContentModerator, get_moderator

logger = get_logger(__name__)

MAX_CONTENT_LENGTH = 2000
TOGGLED = (InteractionType.LIKE, InteractionType.REPOST)
COUNTER_FOR = {
    InteractionType.LIKE: "likes",
    InteractionType.REPOST: "reposts",
    InteractionType.VIEW: "views",
}


def post_to_dict(post: Post) -> Dict[str, Any]:
    return {
        "id": post.id,
        "author_id": post.author_id,
        "author_type": post.author_type,
        "content": post.content,
        "parent_id": post.parent_id,
        "quoted_post_id": post.quoted_post_id,
        "thread_id": post.thread_id,
        "visibility": post.visibility,
        "likes": post.likes or 0,
        "reposts": post.reposts or 0,
        "replies": post.replies or 0,
        "views": post.views or 0,
        "moderation": post.moderation_metadata,
        "created_at": post.created_at.isoformat() if post.created_at else None,
    }


async def _invalidate(cache: Optional[RedisCache], user_id: Optional[str] = None) -> None:
    tags = ["feeds", "posts"]
    if user_id:
        tags.append(f"feed:{user_id}")
    await (cache or get_cache()).invalidate_tags(tags)


async def create_post(
    session: AsyncSession,
    author_id: str,
    content: str,
    parent_id: Optional[str] = None,
    quoted_post_id: Optional[str] = None,
    visibility: str = Visibility.PUBLIC.value,
    author_type: str = AuthorType.USER.value,
    generation_source: Optional[Dict[str, Any]] = None,
    moderator: Optional[ContentModerator] = None,
    cache: Optional[RedisCache] = None,
) -> Post:
    """Moderate and store a post; replies inherit their parent's thread."""
    content = (content or "").strip()
    if not 1 <= len(content) <= MAX_CONTENT_LENGTH:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Content must be 1..{MAX_CONTENT_LENGTH} characters")
    if visibility not in (Visibility.PUBLIC.value, Visibility.DRAFT.value):
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown visibility: {visibility}")

    moderator = moderator or get_moderator()
    verdict = await moderator.moderate(content, {"author_id": author_id, "parent_id": parent_id})
    if verdict.blocked:
        raise SpotlightError(ErrorCode.CONTENT_BLOCKED, verdict.reason or "Content blocked by moderation")

    parent = None
    if parent_id:
        parent = await repo.get_post(session, parent_id)
        if parent is None:
            raise SpotlightError(ErrorCode.POST_NOT_FOUND, "Parent post not found")
    if quoted_post_id and await repo.get_post(session, quoted_post_id) is None:
        raise SpotlightError(ErrorCode.POST_NOT_FOUND, "Quoted post not found")

    post = Post(
        id=new_id(),
        author_id=author_id,
        author_type=author_type,
        content=content,
        parent_id=parent_id,
        quoted_post_id=quoted_post_id,
        visibility=visibility,
        likes=0,
        reposts=0,
        replies=0,
        views=0,
        moderation_metadata=verdict.to_dict(),
        generation_source=generation_source,
    )
    await repo.add_post(session, post)
    if parent is not None:
        post.thread_id = parent.thread_id or parent.id
        await repo.adjust_counter(session, parent.id, "replies", 1)
    else:
        post.thread_id = post.id
    await session.commit()
    await session.refresh(post)

    await _invalidate(cache, author_id)
    logger.info(
        f"Post created by {author_type} {author_id}",
        extra={"post_id": post.id, "moderation": verdict.action.value, "reply": parent is not None},
    )
    return post


async def create_reply(session: AsyncSession, user_id: str, parent_id: str, content: str,
                       **kwargs) -> Post:
    if not parent_id:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, "Parent post ID is required")
    return await create_post(session, user_id, content, parent_id=parent_id, **kwargs)


async def delete_post(session: AsyncSession, user_id: str, post_id: str,
                      cache: Optional[RedisCache] = None) -> Dict[str, Any]:
    """Soft delete: the row stays, public queries stop returning it."""
    post = await repo.get_post(session, post_id)
    if post is None:
        raise SpotlightError(ErrorCode.POST_NOT_FOUND)
    if post.author_id != user_id:
        raise SpotlightError(ErrorCode.FORBIDDEN, "You can only delete your own posts")

    await repo.soft_delete_post(session, post.id)
    if post.parent_id:
        await repo.adjust_counter(session, post.parent_id, "replies", -1)
    await session.commit()
    await _invalidate(cache, user_id)
    logger.info(f"Post {post_id} soft-deleted", extra={"user_id": user_id})
    return {"id": post_id, "deleted": True}


async def toggle_interaction(session: AsyncSession, user_id: str, post_id: str, type_: str,
                             cache: Optional[RedisCache] = None) -> Dict[str, Any]:
    """LIKE and REPOST toggle; VIEW is always recorded."""
    try:
        kind = InteractionType(type_)
    except ValueError:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown interaction type: {type_}")

    post = await repo.get_post(session, post_id)
    if post is None or post.visibility != Visibility.PUBLIC.value:
        raise SpotlightError(ErrorCode.POST_NOT_FOUND)

    counter = COUNTER_FOR[kind]
    if kind in TOGGLED:
        existing = await repo.find_interaction(session, user_id, post_id, kind.value)
        if existing is not None:
            await repo.remove_interaction(session, existing.id)
            await repo.adjust_counter(session, post_id, counter, -1)
            await session.commit()
            await _invalidate(cache)
            return {"action": "removed", "type": kind.value}

    await repo.add_interaction(session, user_id, post_id, kind.value)
    await repo.adjust_counter(session, post_id, counter, 1)
    await session.commit()
    if kind in TOGGLED:
        await _invalidate(cache)
    return {"action": "added", "type": kind.value}


async def get_post(session: AsyncSession, post_id: str, include_thread: bool = False) -> Dict[str, Any]:
    post = await repo.get_post(session, post_id)
    if post is None or post.visibility != Visibility.PUBLIC.value:
        raise SpotlightError(ErrorCode.POST_NOT_FOUND)
    data = post_to_dict(post)
    if include_thread:
        replies = await repo.get_replies(session, post_id)
        data["thread"] = [post_to_dict(r) for r in replies]
    return data
