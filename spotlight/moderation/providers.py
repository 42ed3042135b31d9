"""Category score providers for moderation."""

import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from spotlight.core.logging import get_logger
from spotlight.core.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class ModerationProvider(ABC):
    """Returns category -> score in [0, 1]."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def score(self, content: str) -> Dict[str, float]:
        pass


LEXICON = {
    "harassment/threatening": ("i will hurt you", "you will regret", "watch your back"),
    "violence": ("kill", "murder", "shoot", "stab"),
    "violence/graphic": ("dismember", "gore", "mutilate"),
    "self-harm/instructions": ("how to hurt myself", "how to end my life"),
    "illicit": ("buy drugs", "counterfeit", "stolen cards"),
    "hate/threatening": ("exterminate them", "wipe them out"),
}

_URL = re.compile(r"https?://\S+")
_REPEATED = re.compile(r"(.)\1{6,}")


class RuleBasedModerationProvider(ModerationProvider):
    """Keyword lexicon plus spam heuristics; no network calls."""

    @property
    def provider_name(self) -> str:
        return "rules"

    async def score(self, content: str) -> Dict[str, float]:
        text = (content or "").lower()
        scores: Dict[str, float] = {}
        for category, terms in LEXICON.items():
            hits = sum(1 for term in terms if term in text)
            if hits:
                scores[category] = min(1.0, 0.5 * hits)
        spam = self._spam_score(content or "")
        if spam:
            scores["spam"] = spam
        return scores

    @staticmethod
    def _spam_score(content: str) -> float:
        score = 0.0
        letters = [c for c in content if c.isalpha()]
        if len(letters) >= 20 and sum(c.isupper() for c in letters) / len(letters) > 0.8:
            score += 0.4
        if len(_URL.findall(content)) >= 3:
            score += 0.4
        if _REPEATED.search(content):
            score += 0.3
        return min(1.0, score)


class OpenAIModerationProvider(ModerationProvider):
    """OpenAI moderation endpoint over httpx with retries."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: float = 10.0):
        self.api_key = api_key or settings.openai_api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return "openai"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def score(self, content: str) -> Dict[str, float]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/moderations",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"input": content},
            )
            response.raise_for_status()
            result = response.json()["results"][0]
        return {k: float(v) for k, v in result.get("category_scores", {}).items()}


def create_provider(name: Optional[str] = None) -> ModerationProvider:
    name = (name or settings.moderation_provider).lower()
    if name == "openai":
        if not settings.openai_api_key:
            logger.warning("OpenAI moderation requested without API key, using rules")
            return RuleBasedModerationProvider()
        return OpenAIModerationProvider()
    return RuleBasedModerationProvider()
