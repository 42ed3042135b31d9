"""Moderation decisions: scores -> policy -> ALLOW / WARN / BLOCK."""

import hashlib
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.logging import get_logger
from .policy import DEFAULT_POLICY, HIGH_RISK_THRESHOLD, MULTIPLE_FLAGS, CategoryRule
from .providers import ModerationProvider, RuleBasedModerationProvider, create_provider

logger = get_logger(__name__)


class ModerationAction(str, Enum):
    ALLOW = "ALLOW"
    WARN = "WARN"
    BLOCK = "BLOCK"


@dataclass
class ModerationResult:
    action: ModerationAction
    reason: Optional[str] = None
    categories: Dict[str, float] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def blocked(self) -> bool:
        return self.action == ModerationAction.BLOCK

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModerationResult":
        return cls(
            action=ModerationAction(data["action"]),
            reason=data.get("reason"),
            categories=data.get("categories") or {},
            metadata=data.get("metadata") or {},
        )


def decide(scores: Dict[str, float], policy: Dict[str, CategoryRule] = DEFAULT_POLICY) -> ModerationResult:
    flagged: List[str] = []
    blocking: List[str] = []
    escalate = False
    for category, value in scores.items():
        rule = policy.get(category)
        if rule is None or value < rule.threshold:
            continue
        flagged.append(category)
        if rule.action == "block":
            blocking.append(category)
        elif rule.action == "escalate":
            escalate = True
        if value >= HIGH_RISK_THRESHOLD:
            escalate = True

    if len(flagged) >= MULTIPLE_FLAGS:
        escalate = True

    metadata = {"flagged": sorted(flagged), "escalation_required": escalate}
    if blocking:
        return ModerationResult(ModerationAction.BLOCK, f"Blocked: {', '.join(sorted(blocking))}",
                                scores, metadata)
    if flagged:
        return ModerationResult(ModerationAction.WARN, f"Flagged: {', '.join(sorted(flagged))}",
                                scores, metadata)
    return ModerationResult(ModerationAction.ALLOW, None, scores, metadata)


class ContentModerator:
    """Moderates content with caching and a rules fallback."""

    CACHE_TTL = 24 * 3600

    def __init__(self, provider: Optional[ModerationProvider] = None,
                 cache: Optional[RedisCache] = None,
                 policy: Optional[Dict[str, CategoryRule]] = None):
        self.provider = provider or create_provider()
        self.fallback = RuleBasedModerationProvider()
        self.cache = cache or get_cache()
        self.policy = policy or DEFAULT_POLICY

    @staticmethod
    def cache_key(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    async def moderate(self, content: str, context: Optional[Dict[str, Any]] = None) -> ModerationResult:
        key = self.cache_key(content)
        cached = await self.cache.get(key, namespace="moderation")
        if cached is not None:
            result = ModerationResult.from_dict(cached)
            result.metadata["cache_hit"] = True
            return result

        provider = self.provider
        try:
            scores = await provider.score(content)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(f"Moderation provider {provider.provider_name} failed, using rules: {e}")
            provider = self.fallback
            scores = await provider.score(content)

        result = decide(scores, self.policy)
        result.metadata.update({"provider": provider.provider_name, "cache_hit": False})
        await self.cache.set(key, result.to_dict(), ttl=self.CACHE_TTL, namespace="moderation")

        if result.action != ModerationAction.ALLOW:
            logger.info(
                f"Moderation {result.action.value}: {result.reason}",
                extra={"provider": provider.provider_name, "context": context or {}},
            )
        return result


_moderator = None


def get_moderator() -> ContentModerator:
    global _moderator
    if _moderator is None:
        _moderator = ContentModerator()
    return _moderator
