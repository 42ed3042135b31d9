"""Content scheduling endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_current_user, get_db
from spotlight.core.cache import RedisCache
from spotlight.jobs import scheduler
from spotlight.jobs.queue import JobQueue

router = APIRouter(prefix="/api/content", tags=["content"])


class ScheduleRequest(BaseModel):
    type: str = Field(pattern="^(POST|REPLY|DM|INTERACTION)$")
    persona_ids: Optional[List[str]] = None
    scheduled_at: Optional[datetime] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


@router.post("/schedule", status_code=status.HTTP_201_CREATED)
async def schedule(
    request: ScheduleRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    jobs = await scheduler.schedule_content(
        db, user_id, request.type,
        persona_ids=request.persona_ids,
        scheduled_at=request.scheduled_at,
        parameters=request.parameters,
        queue=JobQueue(cache),
    )
    return {"jobs": [scheduler.job_to_dict(j) for j in jobs], "count": len(jobs)}


@router.get("/jobs")
async def list_jobs(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[str] = None,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await scheduler.list_jobs(db, user_id, status_filter, limit, cursor)


@router.post("/jobs/{job_id}/cancel")
async def cancel(job_id: str, user_id: str = Depends(get_current_user),
                 db: AsyncSession = Depends(get_db)):
    job = await scheduler.cancel_job(db, user_id, job_id)
    return scheduler.job_to_dict(job)
