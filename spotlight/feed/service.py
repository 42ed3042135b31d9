"""Feed assembly: sources -> scores -> blend -> diversity -> cached pages."""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.repositories import list_current_trends
from spotlight.core.settings import get_settings
from spotlight.core.time import utcnow
from .merge import blend_pages, dedupe, diversify, finalize
from .scoring import Candidate, score_candidates
from .sources import discovery_candidates, following_candidates, trending_candidates

logger = get_logger(__name__)
settings = get_settings()

FEED_TYPES = ("hybrid", "following", "discover", "trending")
MAX_PAGE_SIZE = 100
FALLBACK_WINDOW_HOURS = 24 * 7


@dataclass
class FeedPage:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"items": self.items, "next_cursor": self.next_cursor, "has_more": self.has_more}


def encode_cursor(offset: int) -> str:
    raw = json.dumps({"o": offset}).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: Optional[str]) -> int:
    if not cursor:
        return 0
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        offset = int(json.loads(base64.urlsafe_b64decode(padded))["o"])
    except (binascii.Error, ValueError, KeyError, TypeError):
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, "Malformed cursor")
    if offset < 0:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, "Malformed cursor")
    return offset


class FeedService:
    """Builds ranked feeds for a user."""

    def __init__(self, session: AsyncSession, cache: Optional[RedisCache] = None):
        self.session = session
        self.cache = cache or get_cache()
        self.pool_size = settings.feed_candidate_pool
        self.ratio = settings.feed_following_ratio
        self.decay_hours = settings.feed_decay_hours
        self.max_per_author = settings.feed_max_per_author

    async def get_feed(self, user_id: str, feed_type: str = "hybrid", limit: int = 20,
                       cursor: Optional[str] = None) -> FeedPage:
        if feed_type not in FEED_TYPES:
            raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown feed type: {feed_type}")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"limit must be 1..{MAX_PAGE_SIZE}")
        offset = decode_cursor(cursor)

        # hybrid pools are blended page by page, so the page size is part of the key
        key = f"feed:{user_id}:{feed_type}"
        if feed_type == "hybrid":
            key = f"{key}:{limit}"
        ranked = await self.cache.with_cache(
            key,
            lambda: self._build_ranked(user_id, feed_type, limit),
            ttl=settings.feed_cache_ttl,
            namespace="feeds",
            tags=["feeds", f"feed:{user_id}"],
        ) or []

        items = ranked[offset:offset + limit]
        has_more = offset + limit < len(ranked)
        return FeedPage(
            items=items,
            next_cursor=encode_cursor(offset + limit) if has_more else None,
            has_more=has_more,
        )

    async def _build_ranked(self, user_id: str, feed_type: str, page_size: int) -> List[Dict[str, Any]]:
        now = utcnow()
        if feed_type == "following":
            ranked = await self._following(user_id, now)
        elif feed_type == "discover":
            ranked = await self._discover(user_id, now)
        elif feed_type == "trending":
            ranked = await self._trending(now)
        else:
            ranked = await self._hybrid(user_id, now, page_size)

        if not ranked and feed_type in ("hybrid", "following"):
            logger.info(f"Empty {feed_type} feed for {user_id}, using fallback")
            fallback = await trending_candidates(
                self.session, self.pool_size, window_hours=FALLBACK_WINDOW_HOURS, source="discovery"
            )
            ranked = self._diversify(score_candidates(fallback, now, self.decay_hours))

        ranked = finalize(ranked, now)
        logger.info(
            f"Built {feed_type} feed",
            extra={"user_id": user_id, "feed_type": feed_type, "items": len(ranked)},
        )
        return [c.to_dict() for c in ranked]

    def _diversify(self, ranked: List[Candidate]) -> List[Candidate]:
        return diversify(ranked, self.max_per_author)

    async def _hybrid(self, user_id: str, now, page_size: int) -> List[Candidate]:
        following = await following_candidates(self.session, user_id, self.pool_size)
        discovery = await discovery_candidates(self.session, user_id, self.pool_size)
        following = self._diversify(score_candidates(dedupe(following), now, self.decay_hours))
        discovery = self._diversify(score_candidates(dedupe(discovery), now, self.decay_hours))
        return blend_pages(following, discovery, page_size, self.ratio)

    async def _following(self, user_id: str, now) -> List[Candidate]:
        following = await following_candidates(self.session, user_id, self.pool_size)
        return self._diversify(score_candidates(dedupe(following), now, self.decay_hours))

    async def _discover(self, user_id: str, now) -> List[Candidate]:
        discovery = await discovery_candidates(self.session, user_id, self.pool_size)
        return self._diversify(score_candidates(dedupe(discovery), now, self.decay_hours))

    async def _trending(self, now) -> List[Candidate]:
        trends = await list_current_trends(self.session, limit=20)
        trend_dicts = [{"topic": t.topic, "velocity": t.velocity} for t in trends]
        candidates = await trending_candidates(self.session, self.pool_size)
        return self._diversify(
            score_candidates(dedupe(candidates), now, self.decay_hours, trends=trend_dicts)
        )



async def invalidate_user_feed(user_id: str, cache: Optional[RedisCache] = None) -> int:
    return await (cache or get_cache()).invalidate_feed(user_id)


async def invalidate_all_feeds(cache: Optional[RedisCache] = None) -> int:
    return await (cache or get_cache()).invalidate_feed()
