"""Feed endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_current_user, get_db
from spotlight.core.cache import RedisCache
from spotlight.feed.service import FeedService

router = APIRouter(prefix="/api/feed", tags=["feed"])


@router.get("")
async def get_feed(
    type: str = Query(default="hybrid", pattern="^(hybrid|following|discover|trending)$"),
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[str] = None,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    page = await FeedService(db, cache).get_feed(user_id, type, limit, cursor)
    return page.to_dict()
