"""Scheduling, listing and cancelling content generation jobs."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.core import repositories as repo
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.models import JobStatus, ScheduledJob, new_id
from spotlight.core.time import utcnow
from .queue import JobQueue

logger = get_logger(__name__)

CONTENT_TYPES = ("POST", "REPLY", "DM", "INTERACTION")
DEFAULT_PERSONA_LIMIT = 10
QUEUE_UNAVAILABLE = "Job queue unavailable"

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.PENDING},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]


def transition(job: ScheduledJob, target: JobStatus, now: Optional[datetime] = None) -> ScheduledJob:
    """Move a job to a new status, stamping start/finish times."""
    if not can_transition(job.status, target):
        raise SpotlightError(
            ErrorCode.INVALID_JOB_TRANSITION, f"Cannot move job from {job.status} to {target.value}"
        )
    now = now or utcnow()
    job.status = target.value
    if target == JobStatus.RUNNING:
        job.started_at = now
    elif target in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
        job.completed_at = now
    return job


def job_to_dict(job: ScheduledJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "type": job.type,
        "status": job.status,
        "persona_id": job.persona_id,
        "payload": job.payload,
        "result": job.result,
        "error": job.error,
        "attempts": job.attempts,
        "scheduled_for": job.scheduled_for.isoformat() if job.scheduled_for else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "created_at": job.created_at.isoformat() if job.created_at else None,
    }


async def enqueue_or_cancel(session: AsyncSession, queue: JobQueue, jobs: List[ScheduledJob]) -> int:
    """Queue PENDING jobs; jobs the queue refuses are cancelled with an error.

    Returns the number of jobs actually queued.
    """
    refused = []
    for job in jobs:
        if not await queue.enqueue(job.id, job.persona_id, job.payload or {}, attempt=job.attempts or 0):
            job.error = QUEUE_UNAVAILABLE
            transition(job, JobStatus.CANCELLED)
            refused.append(job)
    if refused:
        await session.commit()
        logger.warning(
            f"Cancelled {len(refused)} jobs that could not be queued",
            extra={"jobs": [j.id for j in refused]},
        )
    return len(jobs) - len(refused)


async def schedule_content(
    session: AsyncSession,
    user_id: str,
    content_type: str,
    persona_ids: Optional[List[str]] = None,
    scheduled_at: Optional[datetime] = None,
    parameters: Optional[Dict[str, Any]] = None,
    queue: Optional[JobQueue] = None,
) -> List[ScheduledJob]:
    """Create one PENDING job per targeted active persona and enqueue it."""
    if content_type not in CONTENT_TYPES:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown content type: {content_type}")

    if persona_ids:
        personas = await repo.list_personas(session, active_only=True, persona_ids=persona_ids,
                                            limit=len(persona_ids))
    else:
        personas = await repo.list_personas(session, active_only=True, limit=DEFAULT_PERSONA_LIMIT)
    if not personas:
        raise SpotlightError(ErrorCode.NO_ACTIVE_PERSONAS, "No active personas available")

    payload = {
        "content_type": content_type,
        "parameters": parameters or {},
        "scheduled_at": scheduled_at.isoformat() if scheduled_at else None,
    }
    jobs = []
    for persona in personas:
        job = ScheduledJob(
            id=new_id(),
            type="CONTENT_GENERATION",
            status=JobStatus.PENDING.value,
            user_id=user_id,
            persona_id=persona.id,
            payload=payload,
            attempts=0,
            scheduled_for=scheduled_at,
        )
        session.add(job)
        jobs.append(job)
    await session.commit()
    for job in jobs:
        await session.refresh(job)

    queued = await enqueue_or_cancel(session, queue or JobQueue(), jobs)

    logger.info(
        f"Scheduled {len(jobs)} {content_type} jobs",
        extra={"user_id": user_id, "personas": [p.id for p in personas], "queued": queued},
    )
    return jobs


async def list_jobs(session: AsyncSession, user_id: str, status: Optional[str] = None,
                    limit: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
    if status is not None:
        try:
            status = JobStatus(status).value
        except ValueError:
            raise SpotlightError(ErrorCode.VALIDATION_ERROR, f"Unknown job status: {status}")
    rows = await repo.list_jobs(session, user_id, status=status, limit=limit, cursor=cursor)
    has_more = len(rows) > limit
    rows = rows[:limit]
    return {
        "jobs": [job_to_dict(j) for j in rows],
        "next_cursor": rows[-1].id if has_more and rows else None,
    }


async def cancel_job(session: AsyncSession, user_id: str, job_id: str) -> ScheduledJob:
    job = await repo.get_job(session, job_id)
    if job is None:
        raise SpotlightError(ErrorCode.JOB_NOT_FOUND)
    if job.user_id != user_id:
        raise SpotlightError(ErrorCode.FORBIDDEN, "You can only cancel your own jobs")
    if job.status == JobStatus.COMPLETED.value:
        raise SpotlightError(ErrorCode.JOB_ALREADY_COMPLETED, "Job has already completed")
    transition(job, JobStatus.CANCELLED)
    await session.commit()
    logger.info(f"Job {job_id} cancelled", extra={"user_id": user_id})
    return job
