"""Shared FastAPI dependencies."""

from typing import Optional

from fastapi import Header

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.db import get_db  # noqa: F401  re-exported for routers
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.moderation import ContentModerator, get_moderator


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    """Caller identity from a bearer token or the X-User-Id header."""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    raise SpotlightError(ErrorCode.UNAUTHORIZED, "Authentication required")


def get_cache_dep() -> RedisCache:
    return get_cache()


def get_moderator_dep() -> ContentModerator:
    return get_moderator()
