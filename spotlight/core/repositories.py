"""Repository layer for database operations.

Plain async functions over an AsyncSession. Every query that serves public
content goes through the visible_* filters so soft-deleted rows never leak.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core.logging import get_logger
from spotlight.core.models import (
    Follow, Interaction, NewsItem, Persona, Post, ScheduledJob,
    Trend, User, Visibility,
)
from spotlight.core.time import utcnow

logger = get_logger(__name__)


def visible_posts():
    """Filter for posts that may appear in public queries."""
    return and_(Post.deleted_at.is_(None), Post.visibility == Visibility.PUBLIC.value)


def visible_personas():
    return Persona.deleted_at.is_(None)


def live_trends(now: Optional[datetime] = None):
    now = now or utcnow()
    return and_(
        Trend.is_active.is_(True),
        or_(Trend.expires_at.is_(None), Trend.expires_at > now),
    )


# Users and follows

async def get_user(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_followee_ids(session: AsyncSession, user_id: str) -> List[str]:
    stmt = select(Follow.followee_id).where(Follow.follower_id == user_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


# Posts

async def get_post(session: AsyncSession, post_id: str, include_deleted: bool = False) -> Optional[Post]:
    stmt = select(Post).where(Post.id == post_id)
    if not include_deleted:
        stmt = stmt.where(Post.deleted_at.is_(None))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_replies(session: AsyncSession, post_id: str, limit: int = 50) -> List[Post]:
    stmt = (
        select(Post)
        .where(Post.parent_id == post_id, visible_posts())
        .order_by(Post.created_at.asc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add_post(session: AsyncSession, post: Post) -> Post:
    session.add(post)
    await session.flush()
    return post


async def adjust_counter(session: AsyncSession, post_id: str, column: str, delta: int) -> None:
    """Increment or decrement an engagement counter, never below zero."""
    col = getattr(Post, column)
    stmt = (
        update(Post)
        .where(Post.id == post_id)
        .values({column: func.greatest(col + delta, 0)})
    )
    await session.execute(stmt)


async def soft_delete_post(session: AsyncSession, post_id: str, now: Optional[datetime] = None) -> None:
    stmt = (
        update(Post)
        .where(Post.id == post_id)
        .values(deleted_at=now or utcnow(), visibility=Visibility.DRAFT.value)
    )
    await session.execute(stmt)


async def soft_delete_posts_by_author(session: AsyncSession, author_id: str, now: Optional[datetime] = None) -> int:
    stmt = (
        update(Post)
        .where(Post.author_id == author_id, Post.deleted_at.is_(None))
        .values(deleted_at=now or utcnow(), visibility=Visibility.DRAFT.value)
    )
    result = await session.execute(stmt)
    return result.rowcount or 0


# Interactions

async def find_interaction(session: AsyncSession, user_id: str, post_id: str, type_: str) -> Optional[Interaction]:
    stmt = select(Interaction).where(
        Interaction.user_id == user_id,
        Interaction.post_id == post_id,
        Interaction.type == type_,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def add_interaction(session: AsyncSession, user_id: str, post_id: str, type_: str,
                          extra: Optional[Dict[str, Any]] = None) -> Interaction:
    interaction = Interaction(user_id=user_id, post_id=post_id, type=type_, extra=extra)
    session.add(interaction)
    await session.flush()
    return interaction


async def remove_interaction(session: AsyncSession, interaction_id: int) -> None:
    await session.execute(delete(Interaction).where(Interaction.id == interaction_id))


# Personas

async def get_persona(session: AsyncSession, persona_id: str, include_deleted: bool = False) -> Optional[Persona]:
    stmt = select(Persona).where(Persona.id == persona_id)
    if not include_deleted:
        stmt = stmt.where(visible_personas())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_persona_by_username(session: AsyncSession, username: str) -> Optional[Persona]:
    stmt = select(Persona).where(func.lower(Persona.username) == username.lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def personas_stmt(active_only: bool = False, persona_ids: Optional[List[str]] = None, limit: int = 50):
    stmt = select(Persona).where(visible_personas())
    if active_only:
        stmt = stmt.where(Persona.is_active.is_(True))
    if persona_ids:
        stmt = stmt.where(Persona.id.in_(persona_ids))
    return stmt.order_by(Persona.created_at.desc()).limit(limit)


async def list_personas(session: AsyncSession, active_only: bool = False,
                        persona_ids: Optional[List[str]] = None, limit: int = 50) -> List[Persona]:
    result = await session.execute(personas_stmt(active_only, persona_ids, limit))
    return list(result.scalars().all())


# Trends

async def get_trend_by_topic(session: AsyncSession, topic: str) -> Optional[Trend]:
    result = await session.execute(select(Trend).where(Trend.topic == topic))
    return result.scalar_one_or_none()


def current_trends_stmt(limit: int = 10, region: Optional[str] = None, since: Optional[datetime] = None,
                        now: Optional[datetime] = None):
    stmt = select(Trend).where(live_trends(now))
    if region:
        stmt = stmt.where(Trend.region == region)
    if since is not None:
        stmt = stmt.where(Trend.created_at >= since)
    stmt = stmt.order_by(desc(Trend.velocity), desc(Trend.confidence)).limit(limit)
    return stmt


async def list_current_trends(session: AsyncSession, limit: int = 10, region: Optional[str] = None,
                              category: Optional[str] = None, since: Optional[datetime] = None) -> List[Trend]:
    # categories is a JSON list; filter in Python to stay dialect neutral
    fetch_limit = limit * 5 if category else limit
    result = await session.execute(current_trends_stmt(fetch_limit, region, since))
    trends = list(result.scalars().all())
    if category:
        trends = [t for t in trends if category in (t.categories or [])][:limit]
    return trends


async def expire_trends_before(session: AsyncSession, now: datetime) -> int:
    stmt = (
        update(Trend)
        .where(Trend.is_active.is_(True), Trend.expires_at.is_not(None), Trend.expires_at <= now)
        .values(is_active=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount or 0


# News items

async def existing_news_urls(session: AsyncSession, urls: List[str]) -> set:
    if not urls:
        return set()
    result = await session.execute(select(NewsItem.url).where(NewsItem.url.in_(urls)))
    return set(result.scalars().all())


async def recent_news_items(session: AsyncSession, since: datetime,
                            region: Optional[str] = None, limit: int = 1000) -> List[NewsItem]:
    stmt = select(NewsItem).where(NewsItem.published_at >= since)
    if region:
        stmt = stmt.where(NewsItem.region == region)
    stmt = stmt.order_by(desc(NewsItem.published_at)).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


# Scheduled jobs

async def get_job(session: AsyncSession, job_id: str) -> Optional[ScheduledJob]:
    result = await session.execute(select(ScheduledJob).where(ScheduledJob.id == job_id))
    return result.scalar_one_or_none()


def jobs_page_stmt(user_id: str, status: Optional[str] = None, limit: int = 20,
                   anchor: Optional[ScheduledJob] = None):
    """Newest first; (created_at, id) keeps jobs from one batch in order across pages."""
    stmt = select(ScheduledJob).where(ScheduledJob.user_id == user_id)
    if status:
        stmt = stmt.where(ScheduledJob.status == status)
    if anchor is not None:
        stmt = stmt.where(or_(
            ScheduledJob.created_at < anchor.created_at,
            and_(ScheduledJob.created_at == anchor.created_at, ScheduledJob.id < anchor.id),
        ))
    return stmt.order_by(desc(ScheduledJob.created_at), desc(ScheduledJob.id)).limit(limit + 1)


async def list_jobs(session: AsyncSession, user_id: str, status: Optional[str] = None,
                    limit: int = 20, cursor: Optional[str] = None) -> List[ScheduledJob]:
    anchor = await get_job(session, cursor) if cursor else None
    stmt = jobs_page_stmt(user_id, status, limit, anchor)
    result = await session.execute(stmt)
    return list(result.scalars().all())

