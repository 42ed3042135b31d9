"""Trend lifecycle: upserts, expiry, queries and news ingestion."""

import hashlib
import hmac
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.models import NewsItem, Trend
from spotlight.core.repositories import (
    existing_news_urls, expire_trends_before, get_trend_by_topic,
    list_current_trends, live_trends,
)
from spotlight.core.settings import get_settings
from spotlight.core.time import ensure_aware, parse_iso, utcnow

logger = get_logger(__name__)
settings = get_settings()

TIME_RANGES = {"1h": 1, "24h": 24, "7d": 24 * 7, "30d": 24 * 30}
TREND_FIELDS = ("description", "keywords", "velocity", "confidence", "sources", "categories", "region")
INGEST_BATCH_SIZE = 10
DETECTION_THRESHOLD = 5
WEBHOOK_EVENTS = ("trend_detected", "trend_expired", "trending_topic_update")


def trend_to_dict(trend: Trend) -> Dict[str, Any]:
    return {
        "id": trend.id,
        "topic": trend.topic,
        "description": trend.description,
        "keywords": trend.keywords or [],
        "velocity": trend.velocity,
        "confidence": trend.confidence,
        "sources": trend.sources or [],
        "categories": trend.categories or [],
        "region": trend.region,
        "is_active": trend.is_active,
        "peak_at": trend.peak_at.isoformat() if trend.peak_at else None,
        "expires_at": trend.expires_at.isoformat() if trend.expires_at else None,
    }


def _trend_values(payload: Dict[str, Any]) -> Dict[str, Any]:
    values = {k: payload[k] for k in TREND_FIELDS if k in payload}
    if payload.get("peak_at"):
        peak = payload["peak_at"]
        values["peak_at"] = parse_iso(peak) if isinstance(peak, str) else peak
    return values


async def upsert_trend(session: AsyncSession, payload: Dict[str, Any],
                       cache: Optional[RedisCache] = None, invalidate: bool = True) -> Trend:
    """Create or refresh a trend by topic and mark it active."""
    topic = payload["topic"]
    trend = await get_trend_by_topic(session, topic)
    values = _trend_values(payload)
    if trend is None:
        expires_at = payload.get("expires_at")
        if isinstance(expires_at, str):
            expires_at = parse_iso(expires_at)
        trend = Trend(
            topic=topic,
            is_active=True,
            expires_at=expires_at or utcnow() + timedelta(hours=settings.trend_ttl_hours),
            **values,
        )
        session.add(trend)
        logger.info(f"Trend detected: {topic}")
    else:
        for key, value in values.items():
            setattr(trend, key, value)
        if not trend.is_active or (trend.expires_at and trend.expires_at <= utcnow()):
            trend.expires_at = utcnow() + timedelta(hours=settings.trend_ttl_hours)
        trend.is_active = True
        logger.info(f"Trend refreshed: {topic}")
    await session.commit()
    if invalidate:
        await (cache or get_cache()).invalidate_tags(["trends"])
    return trend


async def update_trend(session: AsyncSession, payload: Dict[str, Any],
                       cache: Optional[RedisCache] = None) -> Optional[Trend]:
    """Update metrics of an active trend; unknown or inactive topics are ignored."""
    trend = await get_trend_by_topic(session, payload["topic"])
    if trend is None or not trend.is_active:
        logger.info(f"Ignoring update for inactive trend {payload['topic']}")
        return None
    for key, value in _trend_values(payload).items():
        setattr(trend, key, value)
    await session.commit()
    await (cache or get_cache()).invalidate_tags(["trends"])
    return trend


async def expire_trend(session: AsyncSession, topic: str, cache: Optional[RedisCache] = None) -> bool:
    trend = await get_trend_by_topic(session, topic)
    if trend is None or not trend.is_active:
        return False
    trend.is_active = False
    await session.commit()
    await (cache or get_cache()).invalidate_tags(["trends"])
    logger.info(f"Trend expired: {topic}")
    return True


async def expire_stale_trends(session: AsyncSession, now: Optional[datetime] = None,
                              cache: Optional[RedisCache] = None) -> int:
    """Deactivate every trend whose expiry has passed."""
    expired = await expire_trends_before(session, now or utcnow())
    if expired:
        await (cache or get_cache()).invalidate_tags(["trends"])
        logger.info(f"Expired {expired} stale trends")
    return expired


async def current_trends(session: AsyncSession, limit: int = 10, region: Optional[str] = None,
                         category: Optional[str] = None,
                         cache: Optional[RedisCache] = None) -> List[Dict[str, Any]]:
    cache = cache or get_cache()

    async def fetch():
        trends = await list_current_trends(session, limit=limit, region=region, category=category)
        return [trend_to_dict(t) for t in trends]

    return await cache.with_cache(
        f"current:{limit}:{region or 'global'}:{category or 'all'}",
        fetch,
        namespace="trends",
        tags=["trends"],
    )


def _since(time_range: str) -> datetime:
    if time_range not in TIME_RANGES:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown time range: {time_range}")
    return utcnow() - timedelta(hours=TIME_RANGES[time_range])


async def trends_by_category(session: AsyncSession, category: str, limit: int = 10,
                             time_range: str = "24h") -> List[Dict[str, Any]]:
    trends = await list_current_trends(session, limit=limit, category=category, since=_since(time_range))
    return [trend_to_dict(t) for t in trends]


async def trend_stats(session: AsyncSession, time_range: str = "24h") -> Dict[str, Any]:
    since = _since(time_range)
    stmt = select(
        func.count(Trend.id), func.avg(Trend.velocity), func.avg(Trend.confidence)
    ).where(live_trends(), Trend.created_at >= since)
    total, avg_velocity, avg_confidence = (await session.execute(stmt)).one()

    rows = await session.execute(select(Trend.categories, Trend.region).where(live_trends(), Trend.created_at >= since))
    categories: Dict[str, int] = {}
    regions: Dict[str, int] = {}
    for cats, region in rows.all():
        for c in cats or []:
            categories[c] = categories.get(c, 0) + 1
        key = region or "global"
        regions[key] = regions.get(key, 0) + 1

    top_categories = sorted(categories.items(), key=lambda kv: (-kv[1], kv[0]))[:10]
    return {
        "time_range": time_range,
        "total_active": total or 0,
        "avg_velocity": float(avg_velocity or 0.0),
        "avg_confidence": float(avg_confidence or 0.0),
        "top_categories": [{"category": c, "count": n} for c, n in top_categories],
        "regions": regions,
    }


# Webhook support

def webhook_secret(source: str) -> Optional[str]:
    env_key = f"WEBHOOK_SECRET_{source.upper().replace('-', '_')}"
    return os.getenv(env_key) or settings.webhook_secret_default


def verify_signature(body: bytes, signature: Optional[str], source: str) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded, optional 'sha256=' prefix."""
    secret = webhook_secret(source)
    if not secret:
        logger.warning(f"No webhook secret configured for source {source}, accepting unsigned payload")
        return True
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def ingest_articles(session: AsyncSession, source: str,
                          articles: List[Dict[str, Any]]) -> Dict[str, int]:
    """Store new articles, skipping URLs already known."""
    new = duplicates = 0
    seen = set()
    for start in range(0, len(articles), INGEST_BATCH_SIZE):
        batch = articles[start:start + INGEST_BATCH_SIZE]
        known = await existing_news_urls(session, [a["url"] for a in batch])
        for article in batch:
            url = article["url"]
            if url in known or url in seen:
                duplicates += 1
                continue
            seen.add(url)
            categories = article.get("categories") or []
            published = article.get("published_at")
            session.add(NewsItem(
                title=article["title"],
                content=article.get("content") or "",
                url=url,
                source=source,
                author=article.get("author"),
                category=categories[0] if categories else None,
                region=article.get("region"),
                published_at=parse_iso(published) if isinstance(published, str) else ensure_aware(published),
            ))
            new += 1
        await session.commit()
    logger.info(
        f"News ingested from {source}: {new} new, {duplicates} duplicates",
        extra={"source": source, "new": new, "duplicates": duplicates},
    )
    return {"new": new, "duplicates": duplicates}


async def handle_trend_event(session: AsyncSession, event_type: str, trend: Dict[str, Any],
                             cache: Optional[RedisCache] = None) -> Optional[Trend]:
    if event_type == "trend_detected":
        return await upsert_trend(session, trend, cache=cache)
    if event_type == "trend_expired":
        await expire_trend(session, trend["topic"], cache=cache)
        return None
    if event_type == "trending_topic_update":
        return await update_trend(session, trend, cache=cache)
    raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unsupported trend event: {event_type}")
