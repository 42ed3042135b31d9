"""Database models for SpotlightX."""
import uuid
from enum import Enum

from sqlalchemy import (
    String, DateTime, Boolean, Text, Integer, Float, ARRAY,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from .db import Base


def new_id() -> str:
    return uuid.uuid4().hex


class AuthorType(str, Enum):
    USER = "USER"
    PERSONA = "PERSONA"


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    DRAFT = "DRAFT"


class InteractionType(str, Enum):
    LIKE = "LIKE"
    REPOST = "REPOST"
    VIEW = "VIEW"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class User(Base):
    """Registered users."""
    __tablename__ = "users"

    id = mapped_column(String(32), primary_key=True, default=new_id)
    username = mapped_column(String(30), unique=True, nullable=False)
    display_name = mapped_column(String(100), nullable=True)
    preference_embedding = mapped_column(ARRAY(Float), nullable=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())


class Follow(Base):
    """Follow edges. followee_id points at a user or a persona."""
    __tablename__ = "follows"

    id = mapped_column(Integer, primary_key=True)
    follower_id = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    followee_id = mapped_column(String(32), index=True, nullable=False)
    followee_type = mapped_column(String(16), default=AuthorType.USER.value, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("follower_id", "followee_id", name="uq_follow_pair"),)


class Post(Base):
    """Posts authored by users or personas."""
    __tablename__ = "posts"

    id = mapped_column(String(32), primary_key=True, default=new_id)
    author_id = mapped_column(String(32), index=True, nullable=False)
    author_type = mapped_column(String(16), default=AuthorType.USER.value, nullable=False)
    content = mapped_column(Text, nullable=False)
    parent_id = mapped_column(ForeignKey("posts.id"), index=True, nullable=True)
    quoted_post_id = mapped_column(ForeignKey("posts.id"), nullable=True)
    thread_id = mapped_column(String(32), index=True, nullable=True)
    visibility = mapped_column(String(16), default=Visibility.PUBLIC.value, nullable=False)
    likes = mapped_column(Integer, default=0, nullable=False)
    reposts = mapped_column(Integer, default=0, nullable=False)
    replies = mapped_column(Integer, default=0, nullable=False)
    views = mapped_column(Integer, default=0, nullable=False)
    content_embedding = mapped_column(ARRAY(Float), nullable=True)
    moderation_metadata = mapped_column(JSON, nullable=True)
    generation_source = mapped_column(JSON, nullable=True)  # persona/job that produced it
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class Interaction(Base):
    """User interactions with posts."""
    __tablename__ = "interactions"

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    post_id = mapped_column(ForeignKey("posts.id"), index=True, nullable=False)
    type = mapped_column(String(16), nullable=False)
    extra = mapped_column("metadata", JSON, nullable=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())


class Persona(Base):
    """AI personas that post alongside users."""
    __tablename__ = "personas"

    id = mapped_column(String(32), primary_key=True, default=new_id)
    name = mapped_column(String(50), nullable=False)
    username = mapped_column(String(30), unique=True, nullable=False)
    bio = mapped_column(String(500), nullable=True)
    avatar_url = mapped_column(String(500), nullable=True)
    archetype = mapped_column(String(32), nullable=False)
    personality = mapped_column(JSON, nullable=False)  # big five traits, 0..1
    posting_style = mapped_column(JSON, nullable=False)
    activity_pattern = mapped_column(JSON, nullable=True)
    risk_level = mapped_column(Float, default=0.3, nullable=False)
    is_active = mapped_column(Boolean, default=True, nullable=False)
    created_by = mapped_column(String(32), index=True, nullable=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class Trend(Base):
    """Detected trending topics."""
    __tablename__ = "trends"

    id = mapped_column(Integer, primary_key=True)
    topic = mapped_column(String(200), unique=True, nullable=False)
    description = mapped_column(Text, nullable=True)
    keywords = mapped_column(JSON, nullable=True)
    velocity = mapped_column(Float, default=0.0, nullable=False)
    confidence = mapped_column(Float, default=0.0, nullable=False)
    sources = mapped_column(JSON, nullable=True)
    categories = mapped_column(JSON, nullable=True)
    region = mapped_column(String(8), nullable=True)
    is_active = mapped_column(Boolean, default=True, nullable=False, index=True)
    peak_at = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())


class NewsItem(Base):
    """News articles delivered by the ingestion webhook."""
    __tablename__ = "news_items"

    id = mapped_column(Integer, primary_key=True)
    title = mapped_column(String(800), nullable=False)
    content = mapped_column(Text, nullable=True)
    url = mapped_column(String(1500), unique=True, nullable=False)
    source = mapped_column(String(200), index=True, nullable=False)
    author = mapped_column(String(200), nullable=True)
    category = mapped_column(String(64), nullable=True)
    region = mapped_column(String(8), nullable=True)
    published_at = mapped_column(DateTime(timezone=True), index=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())


class ScheduledJob(Base):
    """Content generation jobs."""
    __tablename__ = "scheduled_jobs"

    id = mapped_column(String(32), primary_key=True, default=new_id)
    type = mapped_column(String(32), default="CONTENT_GENERATION", nullable=False)
    status = mapped_column(String(16), default=JobStatus.PENDING.value, nullable=False, index=True)
    user_id = mapped_column(String(32), index=True, nullable=False)
    persona_id = mapped_column(String(32), index=True, nullable=True)
    payload = mapped_column(JSON, nullable=True)
    result = mapped_column(JSON, nullable=True)
    error = mapped_column(Text, nullable=True)
    attempts = mapped_column(Integer, default=0, nullable=False)
    scheduled_for = mapped_column(DateTime(timezone=True), nullable=True)
    started_at = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at = mapped_column(DateTime(timezone=True), nullable=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)


Index('idx_posts_author_created', Post.author_id, Post.created_at)
Index('idx_posts_visibility_created', Post.visibility, Post.created_at)
Index('idx_interaction_user_post_type', Interaction.user_id, Interaction.post_id, Interaction.type)
Index('idx_trends_active_velocity', Trend.is_active, Trend.velocity.desc())
Index('idx_jobs_user_status', ScheduledJob.user_id, ScheduledJob.status)
