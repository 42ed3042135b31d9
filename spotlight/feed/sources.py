"""Candidate sources: following, discovery and trending lookups."""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import numpy as np
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core.logging import get_logger
from spotlight.core.models import Post
from spotlight.core.repositories import get_followee_ids, get_user, visible_posts
from spotlight.core.time import utcnow
from .scoring import Candidate

logger = get_logger(__name__)

DISCOVERY_LOOKBACK_DAYS = 7
TRENDING_WINDOW_HOURS = 24
EMBEDDING_OVERFETCH = 3


def public_posts_stmt():
    """Base statement for posts visible to everyone."""
    return select(Post).where(visible_posts())


def following_stmt(author_ids: Iterable[str], limit: int, since: Optional[datetime] = None):
    stmt = public_posts_stmt().where(Post.author_id.in_(list(author_ids)))
    if since is not None:
        stmt = stmt.where(Post.created_at >= since)
    return stmt.order_by(desc(Post.created_at)).limit(limit)


def trending_stmt(limit: int, since: datetime, exclude_authors: Iterable[str] = ()):
    engagement = Post.likes + Post.replies + Post.reposts
    stmt = public_posts_stmt().where(Post.created_at >= since)
    exclude = list(exclude_authors)
    if exclude:
        stmt = stmt.where(Post.author_id.not_in(exclude))
    return stmt.order_by(desc(engagement), desc(Post.created_at)).limit(limit)


def embedded_posts_stmt(limit: int, since: datetime, exclude_authors: Iterable[str] = ()):
    stmt = public_posts_stmt().where(
        Post.created_at >= since,
        Post.content_embedding.is_not(None),
    )
    exclude = list(exclude_authors)
    if exclude:
        stmt = stmt.where(Post.author_id.not_in(exclude))
    return stmt.order_by(desc(Post.created_at)).limit(limit)


async def following_candidates(session: AsyncSession, user_id: str, limit: int,
                               since: Optional[datetime] = None) -> List[Candidate]:
    """Posts by followed authors plus the user's own posts, newest first."""
    authors = await get_followee_ids(session, user_id)
    authors.append(user_id)
    result = await session.execute(following_stmt(authors, limit, since))
    posts = result.scalars().all()
    return [Candidate.from_post(p, "following") for p in posts]


async def trending_candidates(session: AsyncSession, limit: int,
                              window_hours: float = TRENDING_WINDOW_HOURS,
                              exclude_authors: Iterable[str] = (),
                              source: str = "trending") -> List[Candidate]:
    since = utcnow() - timedelta(hours=window_hours)
    result = await session.execute(trending_stmt(limit, since, exclude_authors))
    return [Candidate.from_post(p, source) for p in result.scalars().all()]


def rank_by_similarity(posts: List[Post], preference: List[float], limit: int) -> List[Candidate]:
    """Order posts by cosine similarity to a preference vector."""
    if not posts:
        return []
    matrix = np.asarray([p.content_embedding for p in posts], dtype=float)
    pref = np.asarray(preference, dtype=float)
    if matrix.ndim != 2 or matrix.shape[1] != pref.shape[0]:
        logger.warning("Embedding dimension mismatch, skipping similarity ranking")
        return []
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(pref)
    sims = np.divide(matrix @ pref, norms, out=np.zeros(len(posts)), where=norms > 0)
    order = np.argsort(-sims, kind="stable")[:limit]
    return [Candidate.from_post(posts[i], "discovery", similarity=float(sims[i])) for i in order]


async def discovery_candidates(session: AsyncSession, user_id: str, limit: int) -> List[Candidate]:
    """Posts from outside the user's graph.

    Personalised by embedding similarity when the user has a preference
    vector, otherwise the most engaged recent posts.
    """
    exclude = await get_followee_ids(session, user_id)
    exclude.append(user_id)

    user = await get_user(session, user_id)
    preference = user.preference_embedding if user is not None else None
    if preference:
        since = utcnow() - timedelta(days=DISCOVERY_LOOKBACK_DAYS)
        stmt = embedded_posts_stmt(limit * EMBEDDING_OVERFETCH, since, exclude)
        result = await session.execute(stmt)
        ranked = rank_by_similarity(list(result.scalars().all()), preference, limit)
        if ranked:
            return ranked
        logger.info(f"No embedded posts for user {user_id}, falling back to trending")

    return await trending_candidates(session, limit, exclude_authors=exclude, source="discovery")
