"""Scoring functions for feed candidates.

- Engagement: likes + 2 * replies + reposts
- Decay: exp(-age_hours / decay_hours)
- Post score: engagement * decay
- Trending boost: velocity / 10 of the strongest matching trend, capped at 1
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from spotlight.core.time import ensure_aware, hours_between, parse_iso, utcnow

# Scoring configuration
LIKE_WEIGHT = 1.0
REPLY_WEIGHT = 2.0
REPOST_WEIGHT = 1.0
DEFAULT_DECAY_HOURS = 24.0
TRENDING_VELOCITY_SCALE = 10.0

# Thresholds used by explanations
RECENT_HOURS = 2.0
POPULAR_ENGAGEMENT = 10


@dataclass
class Candidate:
    """A post proposed by one of the candidate sources."""
    post_id: str
    author_id: str
    content: str
    created_at: datetime
    author_type: str = "USER"
    likes: int = 0
    reposts: int = 0
    replies: int = 0
    views: int = 0
    source: str = "following"
    embedding: Optional[List[float]] = None
    similarity: Optional[float] = None
    deleted: bool = False
    score: float = 0.0
    boost: float = 0.0
    rank: int = 0
    reasons: List[str] = field(default_factory=list)

    @classmethod
    def from_post(cls, post, source: str, similarity: Optional[float] = None) -> "Candidate":
        return cls(
            post_id=post.id,
            author_id=post.author_id,
            author_type=post.author_type,
            content=post.content,
            created_at=ensure_aware(post.created_at),
            likes=post.likes or 0,
            reposts=post.reposts or 0,
            replies=post.replies or 0,
            views=post.views or 0,
            source=source,
            similarity=similarity,
            deleted=post.deleted_at is not None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        data = dict(data)
        created = data.get("created_at")
        if isinstance(created, str):
            data["created_at"] = parse_iso(created)
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data.pop("embedding", None)
        return data


def engagement(c: Candidate) -> float:
    return c.likes * LIKE_WEIGHT + c.replies * REPLY_WEIGHT + c.reposts * REPOST_WEIGHT


def decay(age_hours: float, decay_hours: float = DEFAULT_DECAY_HOURS) -> float:
    """Exponential time decay; future timestamps count as age zero."""
    if decay_hours <= 0:
        return 0.0
    return math.exp(-max(age_hours, 0.0) / decay_hours)


def post_score(c: Candidate, now: Optional[datetime] = None,
               decay_hours: float = DEFAULT_DECAY_HOURS) -> float:
    now = now or utcnow()
    return engagement(c) * decay(hours_between(c.created_at, now), decay_hours)


def trending_boost(content: str, trends: Iterable[Dict[str, Any]]) -> float:
    """Boost in [0, 1] from the fastest active trend mentioned in the content."""
    text = (content or "").lower()
    best = 0.0
    for trend in trends:
        topic = (trend.get("topic") or "").lower()
        if topic and topic in text:
            best = max(best, float(trend.get("velocity") or 0.0))
    return min(1.0, best / TRENDING_VELOCITY_SCALE)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def sort_key(c: Candidate):
    """Score desc, then newest first, then post id desc."""
    return (-c.score, -c.created_at.timestamp(), _desc_str(c.post_id))


def _desc_str(value: str):
    return tuple(-ord(ch) for ch in value) + (1,)


def score_candidates(candidates: List[Candidate], now: Optional[datetime] = None,
                     decay_hours: float = DEFAULT_DECAY_HOURS,
                     trends: Optional[List[Dict[str, Any]]] = None) -> List[Candidate]:
    """Score in place and return sorted by sort_key."""
    now = now or utcnow()
    for c in candidates:
        c.score = post_score(c, now, decay_hours)
        if trends:
            c.boost = trending_boost(c.content, trends)
            c.score *= 1.0 + c.boost
    return sorted(candidates, key=sort_key)


def explain(c: Candidate, now: Optional[datetime] = None) -> List[str]:
    """Human-readable reasons for a ranked item."""
    now = now or utcnow()
    reasons = []
    if c.source == "following":
        reasons.append("From people you follow")
    elif c.source == "discovery":
        reasons.append("Recommended for you" if c.similarity else "Popular right now")
    elif c.source == "trending":
        reasons.append("Trending now")
    if hours_between(c.created_at, now) <= RECENT_HOURS:
        reasons.append("Recent content")
    if engagement(c) >= POPULAR_ENGAGEMENT:
        reasons.append("Popular")
    if c.boost > 0:
        reasons.append("Trending topic")
    return reasons
