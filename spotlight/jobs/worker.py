"""Content generation worker.

Pops jobs from the Redis queue and drives them through
PENDING -> RUNNING -> COMPLETED | FAILED, with retries re-queued as PENDING.
Also expires stale trends on a fixed interval.
"""

import argparse
import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from spotlight.core import repositories as repo
from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.db import AsyncSessionLocal
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger, setup_logging
from spotlight.core.models import AuthorType, JobStatus
from spotlight.core.settings import get_settings
from spotlight.core.time import ensure_aware, utcnow
from spotlight.llm.prompts import build_persona_prompt, build_system_prompt
from spotlight.llm.provider import LLMError, LLMProvider, LLMProviderFactory
from spotlight.moderation import ContentModerator, get_moderator
from spotlight.posts.service import create_post
from spotlight.trends.service import expire_stale_trends
from .queue import JobQueue
from .scheduler import enqueue_or_cancel, transition

logger = get_logger(__name__)
settings = get_settings()

EXPECTED_ERRORS = (SpotlightError, LLMError, httpx.HTTPError)
POSTING_TYPES = ("POST", "REPLY")
IDLE_SLEEP_SECONDS = 1


class JobWorker:
    """Processes content generation jobs one at a time."""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        queue: Optional[JobQueue] = None,
        llm: Optional[LLMProvider] = None,
        moderator: Optional[ContentModerator] = None,
        cache: Optional[RedisCache] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache or get_cache()
        self.queue = queue or JobQueue(self.cache)
        self.llm = llm or LLMProviderFactory.create_provider()
        self.moderator = moderator or get_moderator()
        self.max_attempts = max_attempts or settings.job_max_attempts
        self._last_expiry = 0.0

    async def run_once(self, timeout: int = 0) -> Optional[str]:
        """Process one queued job; returns its resulting status or None."""
        message = await self.queue.dequeue(timeout=timeout)
        if message is None:
            return None
        job_id = message.get("job_id")

        async with self.session_factory() as session:
            job = await repo.get_job(session, job_id)
            if job is None:
                logger.warning(f"Dropping message for unknown job {job_id}")
                return None
            if job.status == JobStatus.CANCELLED.value:
                logger.info(f"Skipping cancelled job {job_id}")
                return JobStatus.CANCELLED.value
            if job.status != JobStatus.PENDING.value:
                logger.warning(f"Skipping job {job_id} in status {job.status}")
                return job.status
            if self._not_due(job):
                return await self._defer(session, job)

            transition(job, JobStatus.RUNNING)
            job.attempts = (job.attempts or 0) + 1
            await session.commit()

            try:
                result = await self.generate(session, job)
            except Exception as e:
                if not isinstance(e, EXPECTED_ERRORS):
                    logger.exception(f"Unexpected error in job {job_id}")
                await session.rollback()
                await session.refresh(job)
                return await self._handle_failure(session, job, e)

            await session.refresh(job)
            if job.status == JobStatus.CANCELLED.value:
                logger.info(f"Job {job_id} was cancelled while running")
                return job.status
            job.result = result
            job.error = None
            transition(job, JobStatus.COMPLETED)
            await session.commit()
            logger.info(f"Job {job_id} completed", extra={"attempts": job.attempts})
            return job.status

    @staticmethod
    def _not_due(job) -> bool:
        return job.scheduled_for is not None and ensure_aware(job.scheduled_for) > utcnow()

    async def _defer(self, session, job) -> str:
        """Put a job scheduled for later back at the tail of the queue."""
        if await enqueue_or_cancel(session, self.queue, [job]):
            logger.debug(f"Job {job.id} not due until {job.scheduled_for}")
        return job.status

    async def _handle_failure(self, session, job, error: Exception) -> str:
        job.error = str(error)
        if job.attempts < self.max_attempts:
            transition(job, JobStatus.PENDING)
            await session.commit()
            if await enqueue_or_cancel(session, self.queue, [job]):
                logger.warning(f"Job {job.id} failed (attempt {job.attempts}), requeued: {error}")
        else:
            transition(job, JobStatus.FAILED)
            await session.commit()
            logger.error(f"Job {job.id} failed after {job.attempts} attempts: {error}")
        return job.status

    async def generate(self, session, job) -> Dict[str, Any]:
        """Prompt -> LLM -> moderation -> persona post."""
        persona = await repo.get_persona(session, job.persona_id)
        if persona is None or not persona.is_active:
            raise SpotlightError(ErrorCode.PERSONA_NOT_FOUND, f"Persona {job.persona_id} unavailable")

        payload = job.payload or {}
        content_type = payload.get("content_type", "POST")
        parameters = payload.get("parameters") or {}
        trends = await repo.list_current_trends(session, limit=5)
        topics = [t.topic for t in trends]

        prompt = build_persona_prompt(persona, topics, content_type, parameters)
        text = await self.llm.generate(prompt, system=build_system_prompt(persona))
        result: Dict[str, Any] = {
            "content_type": content_type,
            "content": text,
            "provider": self.llm.provider_name,
        }

        if content_type in POSTING_TYPES:
            post = await create_post(
                session,
                persona.id,
                text,
                parent_id=parameters.get("parent_id") if content_type == "REPLY" else None,
                author_type=AuthorType.PERSONA.value,
                generation_source={"job_id": job.id, "persona_id": persona.id,
                                   "provider": self.llm.provider_name},
                moderator=self.moderator,
                cache=self.cache,
            )
            result["post_id"] = post.id
        else:
            verdict = await self.moderator.moderate(text, {"persona_id": persona.id})
            if verdict.blocked:
                raise SpotlightError(ErrorCode.CONTENT_BLOCKED, verdict.reason)
            result["moderation"] = verdict.action.value
        return result

    async def expire_trends_if_due(self) -> int:
        now = time.monotonic()
        if now - self._last_expiry < settings.trend_expiry_interval_seconds:
            return 0
        self._last_expiry = now
        async with self.session_factory() as session:
            return await expire_stale_trends(session, cache=self.cache)

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        logger.info(f"Worker started on queue {self.queue.key}")
        while not stop.is_set():
            try:
                await self.expire_trends_if_due()
                status = await self.run_once(timeout=settings.worker_poll_timeout)
            except Exception:
                logger.exception("Worker iteration failed")
                status = None
            if status in (None, JobStatus.PENDING.value):
                await asyncio.sleep(IDLE_SLEEP_SECONDS)
        logger.info("Worker stopped")


async def _main(once: bool) -> None:
    cache = get_cache()
    await cache.connect()
    worker = JobWorker(cache=cache)
    try:
        if once:
            status = await worker.run_once()
            logger.info(f"Processed one job: {status}")
        else:
            await worker.run_forever()
    finally:
        await cache.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="SpotlightX content generation worker")
    parser.add_argument("--once", action="store_true", help="Process a single job and exit")
    args = parser.parse_args()
    setup_logging("worker")
    asyncio.run(_main(args.once))


if __name__ == "__main__":
    main()
