"""Redis list queue for content generation jobs."""

from typing import Any, Dict, Optional

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.logging import get_logger
from spotlight.core.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class JobQueue:
    """LPUSH on enqueue, (B)RPOP on dequeue: FIFO."""

    def __init__(self, cache: Optional[RedisCache] = None, key: Optional[str] = None):
        self.cache = cache or get_cache()
        self.key = key or settings.job_queue_key

    async def enqueue(self, job_id: str, persona_id: Optional[str], payload: Dict[str, Any],
                      attempt: int = 0) -> bool:
        """Push a job message; False when the queue is unreachable."""
        message = {"job_id": job_id, "persona_id": persona_id, "payload": payload, "attempt": attempt}
        if not await self.cache.lpush(self.key, message):
            return False
        logger.debug(f"Enqueued job {job_id}", extra={"queue": self.key, "attempt": attempt})
        return True

    async def dequeue(self, timeout: int = 0) -> Optional[Dict[str, Any]]:
        return await self.cache.rpop(self.key, timeout=timeout)

    async def size(self) -> int:
        return await self.cache.llen(self.key)
