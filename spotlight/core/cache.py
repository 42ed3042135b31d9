"""Namespaced JSON cache on Redis with tag-based invalidation.

Key schema
----------
{root}:{namespace}:{key}   JSON value, TTL per namespace
{root}:tag:{tag}           set of full keys written with that tag

If Redis is unreachable the cache degrades to an in-process store and keeps
working; errors are logged and treated as misses.
"""

import fnmatch
import json
import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .logging import get_logger
from .settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

DEFAULT_NAMESPACE = "default"

# TTLs in seconds; 0 means no expiry
NAMESPACE_TTLS = {
    "feeds": settings.feed_cache_ttl,
    "trends": settings.trends_cache_ttl,
    "news": 300,
    "personas": 1800,
    "metrics": 600,
    "moderation": 24 * 3600,
}


class MemoryStore:
    """Small subset of Redis commands kept in process memory."""

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}
        self._sets = defaultdict(set)
        self._lists = defaultdict(deque)

    def _alive(self, key: str) -> bool:
        expires = self._expiry.get(key)
        if expires is not None and expires <= time.monotonic():
            self._values.pop(key, None)
            self._expiry.pop(key, None)
            return False
        return key in self._values

    def get(self, key: str) -> Optional[str]:
        return self._values[key] if self._alive(key) else None

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        self._values[key] = value
        if ex:
            self._expiry[key] = time.monotonic() + ex
        else:
            self._expiry.pop(key, None)

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._values.pop(key, None)
            self._expiry.pop(key, None)
            if self._sets.pop(key, None) is not None:
                removed += 1
        return removed

    def exists(self, key: str) -> bool:
        return self._alive(key)

    def expire(self, key: str, seconds: int) -> bool:
        if not self._alive(key):
            return False
        self._expiry[key] = time.monotonic() + seconds
        return True

    def keys(self, pattern: str) -> List[str]:
        return [k for k in list(self._values) if self._alive(k) and fnmatch.fnmatchcase(k, pattern)]

    def sadd(self, key: str, *members: str) -> None:
        self._sets[key].update(members)

    def smembers(self, key: str) -> set:
        return set(self._sets.get(key, ()))

    def lpush(self, key: str, value: str) -> int:
        self._lists[key].appendleft(value)
        return len(self._lists[key])

    def rpop(self, key: str) -> Optional[str]:
        items = self._lists.get(key)
        return items.pop() if items else None

    def llen(self, key: str) -> int:
        return len(self._lists.get(key, ()))


class RedisCache:
    """JSON cache with namespaces, TTLs and tags."""

    def __init__(self, redis_url: Optional[str] = None, root: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self.root = root or settings.cache_namespace
        self.default_ttl = settings.cache_default_ttl
        self.redis: Optional[aioredis.Redis] = None
        self._memory = MemoryStore()

    async def connect(self) -> bool:
        """Connect to Redis, falling back to memory when it is unavailable."""
        try:
            client = aioredis.from_url(self.redis_url, decode_responses=True)
            await client.ping()
            self.redis = client
            logger.info("Connected to Redis cache", extra={"redis_url": self.redis_url})
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Redis not available, using in-memory cache: {e}")
            self.redis = None
            return False

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis is not None else "memory"

    def make_key(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> str:
        return f"{self.root}:{namespace}:{key}"

    def tag_key(self, tag: str) -> str:
        return f"{self.root}:tag:{tag}"

    def ttl_for(self, namespace: str, ttl: Optional[int] = None) -> int:
        if ttl is not None:
            return ttl
        return NAMESPACE_TTLS.get(namespace, self.default_ttl)

    async def get(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> Any:
        full_key = self.make_key(key, namespace)
        try:
            if self.redis:
                raw = await self.redis.get(full_key)
            else:
                raw = self._memory.get(full_key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {full_key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {full_key}")
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        namespace: str = DEFAULT_NAMESPACE,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        full_key = self.make_key(key, namespace)
        expiry = self.ttl_for(namespace, ttl)
        payload = json.dumps(value, default=str)
        try:
            if self.redis:
                pipe = self.redis.pipeline()
                if expiry > 0:
                    pipe.setex(full_key, expiry, payload)
                else:
                    pipe.set(full_key, payload)
                for tag in tags or ():
                    pipe.sadd(self.tag_key(tag), full_key)
                await pipe.execute()
            else:
                self._memory.set(full_key, payload, ex=expiry or None)
                for tag in tags or ():
                    self._memory.sadd(self.tag_key(tag), full_key)
            return True
        except RedisError as e:
            logger.warning(f"Cache set failed for {full_key}: {e}")
            return False

    async def delete(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
        full_key = self.make_key(key, namespace)
        try:
            if self.redis:
                return bool(await self.redis.delete(full_key))
            return bool(self._memory.delete(full_key))
        except RedisError as e:
            logger.warning(f"Cache delete failed for {full_key}: {e}")
            return False

    async def exists(self, key: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
        full_key = self.make_key(key, namespace)
        try:
            if self.redis:
                return bool(await self.redis.exists(full_key))
            return self._memory.exists(full_key)
        except RedisError as e:
            logger.warning(f"Cache exists failed for {full_key}: {e}")
            return False

    async def expire(self, key: str, ttl: int, namespace: str = DEFAULT_NAMESPACE) -> bool:
        full_key = self.make_key(key, namespace)
        try:
            if self.redis:
                return bool(await self.redis.expire(full_key, ttl))
            return self._memory.expire(full_key, ttl)
        except RedisError as e:
            logger.warning(f"Cache expire failed for {full_key}: {e}")
            return False

    async def delete_by_pattern(self, pattern: str, namespace: str = DEFAULT_NAMESPACE) -> int:
        """Delete keys matching a glob pattern inside a namespace."""
        full_pattern = self.make_key(pattern, namespace)
        try:
            if self.redis:
                keys = [k async for k in self.redis.scan_iter(match=full_pattern, count=500)]
                if not keys:
                    return 0
                return await self.redis.delete(*keys)
            keys = self._memory.keys(full_pattern)
            return self._memory.delete(*keys) if keys else 0
        except RedisError as e:
            logger.warning(f"Cache pattern delete failed for {full_pattern}: {e}")
            return 0

    async def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Delete every key written with any of the given tags."""
        tags = list(tags)
        removed = 0
        for tag in tags:
            tag_key = self.tag_key(tag)
            try:
                if self.redis:
                    members = await self.redis.smembers(tag_key)
                    if members:
                        removed += await self.redis.delete(*members)
                    await self.redis.delete(tag_key)
                else:
                    members = self._memory.smembers(tag_key)
                    if members:
                        removed += self._memory.delete(*members)
                    self._memory.delete(tag_key)
            except RedisError as e:
                logger.warning(f"Tag invalidation failed for {tag}: {e}")
        if removed:
            logger.debug(f"Invalidated {removed} cache entries", extra={"tags": list(tags)})
        return removed

    async def with_cache(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
        namespace: str = DEFAULT_NAMESPACE,
        tags: Optional[Iterable[str]] = None,
    ) -> Any:
        """Return the cached value or compute, store and return it."""
        cached = await self.get(key, namespace)
        if cached is not None:
            return cached
        value = await fetcher()
        if value is not None:
            await self.set(key, value, ttl=ttl, namespace=namespace, tags=tags)
        return value

    async def invalidate_feed(self, user_id: Optional[str] = None) -> int:
        """Drop cached feeds for one user, or for everybody."""
        return await self.invalidate_tags([f"feed:{user_id}"] if user_id else ["feeds"])

    # Raw list operations used by the job queue (not namespaced)

    async def lpush(self, key: str, value: Any) -> int:
        """Push onto a list; 0 means the push failed."""
        payload = json.dumps(value, default=str)
        try:
            if self.redis:
                return await self.redis.lpush(key, payload)
            return self._memory.lpush(key, payload)
        except (RedisError, OSError) as e:
            logger.warning(f"List push failed for {key}: {e}")
            return 0

    async def rpop(self, key: str, timeout: int = 0) -> Any:
        try:
            if self.redis:
                if timeout:
                    item = await self.redis.brpop(key, timeout=timeout)
                    raw = item[1] if item else None
                else:
                    raw = await self.redis.rpop(key)
            else:
                raw = self._memory.rpop(key)
        except (RedisError, OSError) as e:
            logger.warning(f"List pop failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable list item from {key}")
            return None

    async def llen(self, key: str) -> int:
        try:
            if self.redis:
                return await self.redis.llen(key)
            return self._memory.llen(key)
        except (RedisError, OSError) as e:
            logger.warning(f"List length failed for {key}: {e}")
            return 0


_cache = None


def get_cache() -> RedisCache:
    """Get or create the process-wide cache instance."""
    global _cache
    if _cache is None:
        _cache = RedisCache()
    return _cache
