"""Trending topic detection from recent news items.

Pipeline: extract keywords per article -> accumulate time-weighted mentions
per keyword -> filter by mentions/sources/velocity -> group overlapping
keywords into topics -> compare against the previous run.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.repositories import recent_news_items
from spotlight.core.settings import get_settings
from spotlight.core.time import ensure_aware, utcnow
from .service import upsert_trend
from .keywords import extract_keywords, word_overlap
from .velocity import (
    confidence, growth, time_spread_seconds, time_weight, topic_velocity, trend_score,
)

logger = get_logger(__name__)
settings = get_settings()

MIN_MENTIONS = 3
MIN_SOURCES = 2
MIN_VELOCITY = 0.1
MAX_TOPICS = 50
MAX_RELATED = 3
RELATED_THRESHOLD = 0.7
EMERGING_GROWTH = 0.5
TOP_TOPICS = 20
TOP_CHANGES = 10
PREVIOUS_TTL = 2 * 3600
MAX_ARTICLES = 1000

TIME_WINDOWS = {"1h": 1, "6h": 6, "24h": 24, "7d": 24 * 7}


def default_window() -> str:
    """Window label matching the configured trend_window_hours, else 24h."""
    for label, hours in TIME_WINDOWS.items():
        if hours == settings.trend_window_hours:
            return label
    return "24h"


def min_velocity_for(window_hours: float) -> float:
    """MIN_VELOCITY is per hour over a day; longer windows scale it down."""
    return MIN_VELOCITY * min(1.0, 24.0 / window_hours)


@dataclass
class KeywordScore:
    keyword: str
    frequency: float = 0.0
    sources: set = field(default_factory=set)
    articles: List[Any] = field(default_factory=list)
    timestamps: List[datetime] = field(default_factory=list)
    velocity: float = 0.0
    growth: float = 0.0
    score: float = 0.0


@dataclass
class TrendingTopic:
    topic: str
    description: str
    velocity: float
    growth: float
    confidence: float
    score: float
    sources: List[Dict[str, Any]]
    categories: List[str]
    keywords: List[str]
    articles: List[Dict[str, Any]]
    peak_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TrendAnalysis:
    topics: List[Dict[str, Any]]
    emerging: List[Dict[str, Any]]
    declining: List[Dict[str, Any]]
    stats: Dict[str, Any]
    generated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def article_from_news(item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "content": item.content,
        "url": item.url,
        "source": item.source,
        "published_at": ensure_aware(item.published_at),
        "categories": [item.category] if item.category else [],
    }


def score_keywords(articles: List[Dict[str, Any]], now: datetime,
                   window_hours: float) -> Dict[str, KeywordScore]:
    scores: Dict[str, KeywordScore] = {}
    for article in articles:
        published = article["published_at"]
        age = (now - published).total_seconds() / 3600.0
        weight = time_weight(age, window_hours)
        if weight == 0.0:
            continue
        for keyword in extract_keywords(article["title"], article.get("content")):
            ks = scores.setdefault(keyword, KeywordScore(keyword=keyword))
            ks.frequency += weight
            ks.sources.add(article["source"])
            ks.articles.append(article["id"])
            ks.timestamps.append(published)

    for ks in scores.values():
        ks.velocity = topic_velocity(ks.timestamps, now, window_hours)
        ks.growth = growth(ks.timestamps, now, window_hours)
        ks.score = trend_score(ks.frequency, len(ks.sources), ks.growth)
    return scores


def filter_trending(scores: Dict[str, KeywordScore], window_hours: float) -> List[KeywordScore]:
    floor = min_velocity_for(window_hours)
    eligible = [
        ks for ks in scores.values()
        if ks.frequency >= MIN_MENTIONS and len(ks.sources) >= MIN_SOURCES and ks.velocity >= floor
    ]
    eligible.sort(key=lambda ks: (-ks.score, ks.keyword))
    return eligible[:MAX_TOPICS]


def group_keywords(keywords: List[KeywordScore]) -> List[List[KeywordScore]]:
    """Greedy grouping by word overlap, strongest keyword first."""
    groups = []
    processed = set()
    for ks in keywords:
        if ks.keyword in processed:
            continue
        related = [
            other for other in keywords
            if other.keyword != ks.keyword
            and other.keyword not in processed
            and word_overlap(ks.keyword, other.keyword) > RELATED_THRESHOLD
        ][:MAX_RELATED]
        processed.add(ks.keyword)
        processed.update(r.keyword for r in related)
        groups.append([ks] + related)
    return groups


def build_topic(group: List[KeywordScore], articles_by_id: Dict[Any, Dict[str, Any]],
                window_label: str) -> TrendingTopic:
    primary = group[0]
    article_ids = []
    for ks in group:
        for aid in ks.articles:
            if aid not in article_ids:
                article_ids.append(aid)
    topic_articles = [articles_by_id[aid] for aid in article_ids if aid in articles_by_id]
    topic_articles.sort(key=lambda a: a["published_at"], reverse=True)

    source_counts = Counter(a["source"] for a in topic_articles)
    category_counts = Counter(c for a in topic_articles for c in a.get("categories") or [])
    mentions = sum(ks.frequency for ks in group)
    timestamps = [a["published_at"] for a in topic_articles]

    peak_at = None
    if len(topic_articles) >= 3:
        recent = timestamps[:5]
        avg = min(recent) + (max(recent) - min(recent)) / 2
        peak_at = (avg + timedelta(hours=3)).isoformat()

    lead = topic_articles[0] if topic_articles else {}
    description = (lead.get("content") or lead.get("title") or "")[:200]

    return TrendingTopic(
        topic=primary.keyword,
        description=description,
        velocity=sum(ks.velocity for ks in group) / len(group),
        growth=sum(ks.growth for ks in group) / len(group),
        confidence=confidence(len(source_counts), time_spread_seconds(timestamps), mentions),
        score=primary.score,
        sources=[{"id": s, "name": s, "count": n} for s, n in source_counts.most_common()],
        categories=[c for c, _ in category_counts.most_common(3)],
        keywords=[ks.keyword for ks in group],
        articles=[
            {
                "id": a["id"],
                "title": a["title"],
                "url": a["url"],
                "source": a["source"],
                "published_at": a["published_at"].isoformat(),
            }
            for a in topic_articles[:10]
        ],
        peak_at=peak_at,
        metadata={
            "total_mentions": mentions,
            "unique_sources": len(source_counts),
            "timespan": window_label,
            "related_topics": [ks.keyword for ks in group[1:]],
        },
    )


def analyze_articles(articles: List[Dict[str, Any]], now: datetime, window_label: str = "24h") -> List[TrendingTopic]:
    """Detect topics from article dicts without touching storage."""
    window_hours = TIME_WINDOWS[window_label]
    scores = score_keywords(articles, now, window_hours)
    trending = filter_trending(scores, window_hours)
    by_id = {a["id"]: a for a in articles}
    return [build_topic(group, by_id, window_label) for group in group_keywords(trending)]


def classify(current: List[Dict[str, Any]], previous: List[Dict[str, Any]]) -> Tuple[list, list]:
    """(emerging, declining) relative to the previous run."""
    previous_topics = {p["topic"] for p in previous}
    current_by_topic = {c["topic"]: c for c in current}
    emerging = [
        c for c in current
        if c["growth"] > EMERGING_GROWTH and c["topic"] not in previous_topics
    ]
    declining = [
        p for p in previous
        if p["topic"] not in current_by_topic or current_by_topic[p["topic"]]["growth"] < 0
    ]
    return emerging[:TOP_CHANGES], declining[:TOP_CHANGES]


class TrendDetector:
    """Runs detection for a window/region and caches the analysis."""

    def __init__(self, session: AsyncSession, cache: Optional[RedisCache] = None):
        self.session = session
        self.cache = cache or get_cache()

    @staticmethod
    def cache_key(window: str, region: Optional[str]) -> str:
        return f"trending:{window}:{region or 'global'}"

    async def get_cached(self, window: str = "24h", region: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return await self.cache.get(self.cache_key(window, region), namespace="trends")

    async def detect(self, window: str = "24h", region: Optional[str] = None,
                     persist: bool = True) -> TrendAnalysis:
        if window not in TIME_WINDOWS:
            raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown time window: {window}")
        now = utcnow()
        since = now - timedelta(hours=TIME_WINDOWS[window])
        items = await recent_news_items(self.session, since, region, limit=MAX_ARTICLES)
        articles = [article_from_news(i) for i in items if i.published_at is not None]

        topics = [t.to_dict() for t in analyze_articles(articles, now, window)]
        key = self.cache_key(window, region)
        last = await self.cache.get(key, namespace="trends")
        previous = await self.cache.get(f"{key}:previous", namespace="trends")
        emerging, declining = classify(topics, (previous or {}).get("topics", []))

        analysis = TrendAnalysis(
            topics=topics[:TOP_TOPICS],
            emerging=emerging,
            declining=declining,
            stats={
                "total_topics": len(topics),
                "total_articles": len(articles),
                "unique_sources": len({s["id"] for t in topics for s in t["sources"]}),
                "time_window": window,
            },
            generated_at=now.isoformat(),
        )
        logger.info(
            f"Detected {len(topics)} trending topics",
            extra={"window": window, "region": region, "emerging": len(emerging),
                   "declining": len(declining)},
        )

        if persist and topics:
            for topic in topics[:TOP_TOPICS]:
                await upsert_trend(self.session, {**topic, "region": region}, cache=self.cache,
                                   invalidate=False)
            await self.cache.invalidate_tags(["trends"])
        await self._store(key, analysis, last)
        return analysis

    async def _store(self, key: str, analysis: TrendAnalysis, last: Optional[Dict[str, Any]]) -> None:
        if last is not None:
            await self.cache.set(f"{key}:previous", last, ttl=PREVIOUS_TTL, namespace="trends")
        await self.cache.set(key, analysis.to_dict(), ttl=settings.trends_cache_ttl,
                             namespace="trends", tags=["trends"])


async def get_current_trending(session: AsyncSession, window: str = "24h", region: Optional[str] = None,
                               cache: Optional[RedisCache] = None) -> Dict[str, Any]:
    """Cached analysis if present, otherwise a fresh detection."""
    detector = TrendDetector(session, cache)
    cached = await detector.get_cached(window, region)
    if cached is not None:
        return cached
    return (await detector.detect(window, region)).to_dict()
