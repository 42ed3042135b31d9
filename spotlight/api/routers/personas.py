"""Persona endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_current_user, get_db
from spotlight.core.cache import RedisCache
from spotlight.personas import service
from spotlight.personas.schemas import PersonaCreate, PersonaDelete, PersonaUpdate

router = APIRouter(prefix="/api/personas", tags=["personas"])


@router.get("")
async def list_personas(active_only: bool = False, limit: int = 50,
                        db: AsyncSession = Depends(get_db),
                        cache: RedisCache = Depends(get_cache_dep)):
    return {"personas": await service.list_personas(db, active_only, limit, cache=cache)}


@router.get("/{persona_id}")
async def get_persona(persona_id: str, db: AsyncSession = Depends(get_db)):
    return await service.get_persona(db, persona_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_persona(
    request: PersonaCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    persona = await service.create_persona(db, user_id, request, cache=cache)
    return service.persona_to_dict(persona)


@router.patch("/{persona_id}")
async def update_persona(
    persona_id: str,
    request: PersonaUpdate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    persona = await service.update_persona(db, user_id, persona_id, request, cache=cache)
    return service.persona_to_dict(persona)


@router.post("/{persona_id}/delete")
async def delete_persona(
    persona_id: str,
    request: PersonaDelete,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    return await service.delete_persona(db, user_id, persona_id, request.confirm_username, cache=cache)


@router.post("/{persona_id}/toggle")
async def toggle_persona(
    persona_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    persona = await service.toggle_persona_status(db, user_id, persona_id, cache=cache)
    return {"id": persona.id, "is_active": persona.is_active}
