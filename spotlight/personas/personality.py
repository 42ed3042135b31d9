"""Personality defaults and derived activity patterns for personas."""

from typing import Any, Dict, Optional

BIG_FIVE = ("openness", "conscientiousness", "extraversion", "agreeableness", "neuroticism")

ARCHETYPES: Dict[str, Dict[str, float]] = {
    "tech_critic": {
        "openness": 0.8, "conscientiousness": 0.7, "extraversion": 0.4,
        "agreeableness": 0.3, "neuroticism": 0.4,
    },
    "optimistic_futurist": {
        "openness": 0.9, "conscientiousness": 0.6, "extraversion": 0.7,
        "agreeableness": 0.8, "neuroticism": 0.2,
    },
    "news_junkie": {
        "openness": 0.6, "conscientiousness": 0.8, "extraversion": 0.5,
        "agreeableness": 0.5, "neuroticism": 0.5,
    },
    "comedian": {
        "openness": 0.7, "conscientiousness": 0.3, "extraversion": 0.9,
        "agreeableness": 0.6, "neuroticism": 0.3,
    },
}

DEFAULT_TRAIT = 0.5


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, float(value)))


def archetype_key(archetype: str) -> str:
    return archetype.strip().lower().replace(" ", "_").replace("-", "_")


def fill_traits(traits: Optional[Dict[str, float]], archetype: str) -> Dict[str, float]:
    """Missing Big Five traits come from the archetype, else 0.5."""
    base = ARCHETYPES.get(archetype_key(archetype), {})
    traits = traits or {}
    return {
        name: clamp(traits[name] if traits.get(name) is not None else base.get(name, DEFAULT_TRAIT))
        for name in BIG_FIVE
    }


def activity_pattern(traits: Dict[str, float], frequency: float) -> Dict[str, Any]:
    """Posting cadence derived from extraversion, conscientiousness and frequency."""
    extraversion = traits.get("extraversion", DEFAULT_TRAIT)
    conscientiousness = traits.get("conscientiousness", DEFAULT_TRAIT)
    posts_per_day = round(1 + 11 * clamp(frequency) * (0.5 + extraversion / 2), 1)
    start = 7 if conscientiousness >= 0.6 else 10
    span = 12 + round(6 * extraversion)
    hours = [(start + h) % 24 for h in range(span)]
    return {
        "posts_per_day": posts_per_day,
        "active_hours": hours,
        "reply_probability": round(clamp(0.2 + 0.6 * traits.get("agreeableness", DEFAULT_TRAIT) * extraversion), 2),
    }


def process_personality(traits: Optional[Dict[str, float]], archetype: str, risk_level: float,
                        frequency: float = 0.5) -> Dict[str, Any]:
    """Filled traits, clamped risk level and the derived activity pattern."""
    filled = fill_traits(traits, archetype)
    return {
        "personality": filled,
        "risk_level": clamp(risk_level),
        "activity_pattern": activity_pattern(filled, frequency),
    }
