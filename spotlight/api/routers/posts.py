"""Post and interaction endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_current_user, get_db, get_moderator_dep
from spotlight.core.cache import RedisCache
from spotlight.moderation import ContentModerator
from spotlight.posts import service

router = APIRouter(prefix="/api/posts", tags=["posts"])


class PostCreateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    parent_id: Optional[str] = None
    quoted_post_id: Optional[str] = None
    visibility: str = Field(default="PUBLIC", pattern="^(PUBLIC|DRAFT)$")


class ReplyRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class InteractionRequest(BaseModel):
    type: str = Field(pattern="^(LIKE|REPOST|VIEW)$")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreateRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
    moderator: ContentModerator = Depends(get_moderator_dep),
):
    post = await service.create_post(
        db, user_id, request.content,
        parent_id=request.parent_id,
        quoted_post_id=request.quoted_post_id,
        visibility=request.visibility,
        moderator=moderator,
        cache=cache,
    )
    return service.post_to_dict(post)


@router.post("/{post_id}/replies", status_code=status.HTTP_201_CREATED)
async def create_reply(
    post_id: str,
    request: ReplyRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
    moderator: ContentModerator = Depends(get_moderator_dep),
):
    post = await service.create_reply(db, user_id, post_id, request.content,
                                      moderator=moderator, cache=cache)
    return service.post_to_dict(post)


@router.get("/{post_id}")
async def get_post(post_id: str, thread: bool = False, db: AsyncSession = Depends(get_db)):
    return await service.get_post(db, post_id, include_thread=thread)


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    return await service.delete_post(db, user_id, post_id, cache=cache)


@router.post("/{post_id}/interactions")
async def interact(
    post_id: str,
    request: InteractionRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    return await service.toggle_interaction(db, user_id, post_id, request.type, cache=cache)
