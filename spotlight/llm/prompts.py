"""Prompt construction for persona posts."""

from typing import Any, Dict, List, Optional

BASE_PERSONA_PROMPT = """You are a persona on a social network. Stay in character.
- Keep posts under 280 characters
- Use natural, conversational language
- Do not mention that you are an AI
- Engage with trending topics when relevant"""

CONTENT_INSTRUCTIONS = {
    "POST": "Write one original post.",
    "REPLY": "Write a short reply to the post below.",
    "DM": "Write a short direct message.",
    "INTERACTION": "Write a one-line reaction.",
}


def _level(value: float, low: str, mid: str, high: str) -> str:
    if value < 0.3:
        return low
    if value < 0.7:
        return mid
    return high


def build_system_prompt(persona) -> str:
    traits = persona.personality or {}
    style = persona.posting_style or {}
    tone = style.get("tone_preferences") or {}
    topics = ", ".join(style.get("topics") or []) or "anything"
    humor = float(tone.get("humor", 0.5))
    formality = float(tone.get("formality", 0.5))
    controversy = float(tone.get("controversy", persona.risk_level or 0.3))
    return "\n".join([
        BASE_PERSONA_PROMPT,
        "",
        f"Name: {persona.name} (@{persona.username})",
        f"Bio: {persona.bio or ''}",
        f"Archetype: {persona.archetype}",
        f"Openness {traits.get('openness', 0.5):.1f}, extraversion {traits.get('extraversion', 0.5):.1f}, "
        f"agreeableness {traits.get('agreeableness', 0.5):.1f}",
        f"Humor: {_level(humor, 'serious', 'moderate', 'very humorous')}",
        f"Formality: {_level(formality, 'casual', 'balanced', 'formal')}",
        f"Controversy: {_level(controversy, 'safe', 'opinionated', 'edgy')}",
        f"Favourite topics: {topics}",
    ])


def build_persona_prompt(persona, trending_topics: Optional[List[str]] = None,
                         content_type: str = "POST", parameters: Optional[Dict[str, Any]] = None) -> str:
    parameters = parameters or {}
    lines = [CONTENT_INSTRUCTIONS.get(content_type, CONTENT_INSTRUCTIONS["POST"])]
    topic = parameters.get("topic") or (trending_topics[0] if trending_topics else None)
    if topic:
        lines.append(f"Topic: {topic}")
    if trending_topics:
        lines.append(f"Trending now: {', '.join(trending_topics[:5])}")
    if parameters.get("context"):
        lines.append(f"Context: {parameters['context']}")
    return "\n".join(lines)
