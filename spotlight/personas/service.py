"""Persona CRUD with soft deletion."""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core import repositories as repo
from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.models import Persona
from spotlight.core.time import utcnow
from .personality import activity_pattern, fill_traits, process_personality
from .schemas import PersonaCreate, PersonaUpdate

logger = get_logger(__name__)

DEFAULT_FREQUENCY = 0.5
TONE_KEYS = ("humor", "formality", "controversy")


def persona_to_dict(persona: Persona) -> Dict[str, Any]:
    return {
        "id": persona.id,
        "name": persona.name,
        "username": persona.username,
        "bio": persona.bio,
        "archetype": persona.archetype,
        "personality": persona.personality,
        "posting_style": persona.posting_style,
        "activity_pattern": persona.activity_pattern,
        "risk_level": persona.risk_level,
        "is_active": persona.is_active,
        "created_at": persona.created_at.isoformat() if persona.created_at else None,
    }


async def _owned_persona(session: AsyncSession, user_id: str, persona_id: str) -> Persona:
    persona = await repo.get_persona(session, persona_id)
    if persona is None:
        raise SpotlightError(ErrorCode.PERSONA_NOT_FOUND)
    if persona.created_by and persona.created_by != user_id:
        raise SpotlightError(ErrorCode.FORBIDDEN, "You can only manage your own personas")
    return persona


async def _invalidate(cache: Optional[RedisCache], *tags: str) -> None:
    await (cache or get_cache()).invalidate_tags(["personas", *tags])


async def create_persona(session: AsyncSession, user_id: str, data: PersonaCreate,
                         cache: Optional[RedisCache] = None) -> Persona:
    if await repo.get_persona_by_username(session, data.username) is not None:
        raise SpotlightError(ErrorCode.USERNAME_TAKEN, f"Username @{data.username} is already taken")

    posting_style = {
        "frequency": data.frequency if data.frequency is not None else DEFAULT_FREQUENCY,
        "tone_preferences": {k: getattr(data, k) if getattr(data, k) is not None else 0.5 for k in TONE_KEYS},
        "topics": data.topics or [],
    }
    profile = process_personality(data.personality.model_dump(), data.archetype, data.risk_level,
                                  posting_style["frequency"])
    persona = Persona(
        name=data.name,
        username=data.username,
        bio=data.bio,
        archetype=data.archetype,
        personality=profile["personality"],
        posting_style=posting_style,
        activity_pattern=profile["activity_pattern"],
        risk_level=profile["risk_level"],
        is_active=True,
        created_by=user_id,
    )
    session.add(persona)
    await session.commit()
    await session.refresh(persona)
    await _invalidate(cache)
    logger.info(f"Persona created: @{persona.username}", extra={"user_id": user_id})
    return persona


async def update_persona(session: AsyncSession, user_id: str, persona_id: str, data: PersonaUpdate,
                         cache: Optional[RedisCache] = None) -> Persona:
    persona = await _owned_persona(session, user_id, persona_id)

    for field in ("name", "bio", "archetype", "risk_level", "is_active"):
        value = getattr(data, field)
        if value is not None:
            setattr(persona, field, value)

    if data.personality is not None:
        merged = dict(persona.personality or {})
        merged.update(data.personality.model_dump(exclude_none=True))
        persona.personality = fill_traits(merged, persona.archetype)

    style = dict(persona.posting_style or {})
    tone = dict(style.get("tone_preferences") or {})
    tone.update({k: getattr(data, k) for k in TONE_KEYS if getattr(data, k) is not None})
    style["tone_preferences"] = tone
    if data.frequency is not None:
        style["frequency"] = data.frequency
    if data.topics is not None:
        style["topics"] = data.topics
    persona.posting_style = style
    persona.activity_pattern = activity_pattern(persona.personality, style.get("frequency", DEFAULT_FREQUENCY))

    await session.commit()
    await _invalidate(cache)
    return persona


async def delete_persona(session: AsyncSession, user_id: str, persona_id: str, confirm_username: str,
                         cache: Optional[RedisCache] = None) -> Dict[str, Any]:
    """Soft-delete a persona and all of its posts in one transaction."""
    persona = await _owned_persona(session, user_id, persona_id)
    if confirm_username != persona.username:
        raise SpotlightError(ErrorCode.CONFIRMATION_MISMATCH, "Username confirmation does not match")

    now = utcnow()
    persona.is_active = False
    persona.deleted_at = now
    hidden = await repo.soft_delete_posts_by_author(session, persona.id, now)
    await session.commit()
    await _invalidate(cache, "feeds", "posts")
    logger.info(f"Persona deleted: @{persona.username}", extra={"posts_hidden": hidden})
    return {"id": persona.id, "deleted": True, "posts_hidden": hidden}


async def toggle_persona_status(session: AsyncSession, user_id: str, persona_id: str,
                                cache: Optional[RedisCache] = None) -> Persona:
    persona = await _owned_persona(session, user_id, persona_id)
    persona.is_active = not persona.is_active
    await session.commit()
    await _invalidate(cache)
    return persona


async def get_persona(session: AsyncSession, persona_id: str) -> Dict[str, Any]:
    persona = await repo.get_persona(session, persona_id)
    if persona is None:
        raise SpotlightError(ErrorCode.PERSONA_NOT_FOUND)
    return persona_to_dict(persona)


async def list_personas(session: AsyncSession, active_only: bool = False, limit: int = 50,
                        cache: Optional[RedisCache] = None) -> List[Dict[str, Any]]:
    async def fetch():
        personas = await repo.list_personas(session, active_only=active_only, limit=limit)
        return [persona_to_dict(p) for p in personas]

    return await (cache or get_cache()).with_cache(
        f"list:{'active' if active_only else 'all'}:{limit}", fetch,
        namespace="personas", tags=["personas"],
    )
