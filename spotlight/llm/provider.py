"""
LLM provider interface and implementations for persona content.

The dummy provider produces deterministic text without external calls and is
the default for development and tests.
"""

import hashlib
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from spotlight.core.logging import get_logger
from spotlight.core.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class LLMError(Exception):
    """Raised when a provider cannot produce content."""


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate(self, prompt: str, max_tokens: int = 120, temperature: float = 0.8,
                       system: Optional[str] = None) -> str:
        """Return generated text for the prompt."""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check provider health and availability."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identification name."""


class DummyLLMProvider(LLMProvider):
    """Template-based provider; same prompt, same output."""

    OPENERS = (
        "Hot take:",
        "Been thinking about this all day:",
        "Quick thought:",
        "Unpopular opinion:",
        "Can we talk about",
    )

    def __init__(self):
        self.call_count = 0
        self.total_processing_time = 0.0

    @property
    def provider_name(self) -> str:
        return "DummyLLM"

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "avg_response_time": self.total_processing_time / max(self.call_count, 1),
        }

    async def generate(self, prompt: str, max_tokens: int = 120, temperature: float = 0.8,
                       system: Optional[str] = None) -> str:
        started = time.time()
        self.call_count += 1
        digest = int(hashlib.md5(prompt.encode("utf-8")).hexdigest(), 16)
        opener = self.OPENERS[digest % len(self.OPENERS)]
        topic = _topic_hint(prompt)
        text = f"{opener} {topic} is going to matter more than people think."
        self.total_processing_time += time.time() - started
        return text[: max_tokens * 4]


def _topic_hint(prompt: str) -> str:
    for line in prompt.splitlines():
        if line.lower().startswith("topic:"):
            value = line.split(":", 1)[1].strip()
            if value:
                return value
    return "this"


class OpenAIProvider(LLMProvider):
    """Chat completions over httpx with retries on transient errors."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: float = 30.0):
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return f"OpenAI:{self.model}"

    async def health_check(self) -> Dict[str, Any]:
        status = "healthy" if self.api_key else "unconfigured"
        return {"status": status, "provider": self.provider_name}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _complete(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": messages,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
            )
            response.raise_for_status()
            return response.json()

    async def generate(self, prompt: str, max_tokens: int = 120, temperature: float = 0.8,
                       system: Optional[str] = None) -> str:
        if not self.api_key:
            raise LLMError("OpenAI API key is not configured")
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        try:
            data = await self._complete(messages, max_tokens, temperature)
        except httpx.HTTPError as e:
            raise LLMError(f"OpenAI request failed: {e}") from e
        try:
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, AttributeError) as e:
            raise LLMError(f"Unexpected OpenAI response: {e}") from e


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    _providers = {
        "dummy": DummyLLMProvider,
        "openai": OpenAIProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: Optional[str] = None, **config) -> LLMProvider:
        provider_type = (provider_type or settings.llm_provider).lower()
        if provider_type not in cls._providers:
            logger.warning(f"Unknown provider type: {provider_type}, falling back to dummy")
            provider_type = "dummy"
        return cls._providers[provider_type](**config)

    @classmethod
    def register_provider(cls, name: str, provider_class):
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> List[str]:
        return list(cls._providers.keys())
