"""Tests for LLM providers and persona prompts."""

from types import SimpleNamespace

import pytest

from spotlight.llm.prompts import build_persona_prompt, build_system_prompt
from spotlight.llm.provider import (
    DummyLLMProvider,
    LLMError,
    LLMProviderFactory,
    OpenAIProvider,
)


@pytest.fixture
def persona():
    return SimpleNamespace(
        name="Ada",
        username="ada_critique",
        bio="Reads the fine print.",
        archetype="tech_critic",
        risk_level=0.6,
        personality={"openness": 0.8, "extraversion": 0.4, "agreeableness": 0.3},
        posting_style={"tone_preferences": {"humor": 0.2, "formality": 0.8},
                       "topics": ["privacy", "ai"]},
    )


class TestDummyProvider:

    @pytest.mark.asyncio
    async def test_deterministic(self):
        provider = DummyLLMProvider()
        first = await provider.generate("Write one original post.\nTopic: solar storm")
        second = await provider.generate("Write one original post.\nTopic: solar storm")
        assert first == second
        assert "solar storm" in first

    @pytest.mark.asyncio
    async def test_without_topic(self):
        text = await DummyLLMProvider().generate("Say something")
        assert "this is going to matter" in text

    @pytest.mark.asyncio
    async def test_health_tracks_calls(self):
        provider = DummyLLMProvider()
        await provider.generate("x")
        health = await provider.health_check()
        assert health["status"] == "healthy"
        assert health["calls_made"] == 1


class TestFactory:

    def test_unknown_type_falls_back_to_dummy(self):
        assert isinstance(LLMProviderFactory.create_provider("mystery"), DummyLLMProvider)

    def test_openai(self):
        provider = LLMProviderFactory.create_provider("openai", api_key="sk-test", model="gpt-test")
        assert isinstance(provider, OpenAIProvider)
        assert provider.provider_name == "OpenAI:gpt-test"

    def test_list_providers(self):
        assert {"dummy", "openai"} <= set(LLMProviderFactory.list_providers())

    def test_register_provider(self, monkeypatch):
        monkeypatch.setattr(LLMProviderFactory, "_providers", dict(LLMProviderFactory._providers))

        class EchoProvider(DummyLLMProvider):
            pass

        LLMProviderFactory.register_provider("echo", EchoProvider)
        assert isinstance(LLMProviderFactory.create_provider("echo"), EchoProvider)


@pytest.mark.asyncio
async def test_openai_requires_key(monkeypatch):
    from spotlight.llm import provider as provider_module
    monkeypatch.setattr(provider_module.settings, "openai_api_key", None)
    with pytest.raises(LLMError):
        await OpenAIProvider().generate("hello")


class TestPrompts:

    def test_system_prompt_describes_persona(self, persona):
        prompt = build_system_prompt(persona)
        assert "@ada_critique" in prompt
        assert "Humor: serious" in prompt
        assert "Formality: formal" in prompt
        assert "Controversy: opinionated" in prompt
        assert "privacy, ai" in prompt

    def test_persona_prompt_uses_explicit_topic(self, persona):
        prompt = build_persona_prompt(persona, ["mars"], "POST", {"topic": "fusion"})
        assert "Topic: fusion" in prompt
        assert "Trending now: mars" in prompt

    def test_persona_prompt_defaults_to_top_trend(self, persona):
        prompt = build_persona_prompt(persona, ["mars", "fusion"], "REPLY", {"context": "Nice post"})
        assert prompt.startswith("Write a short reply")
        assert "Topic: mars" in prompt
        assert "Context: Nice post" in prompt
