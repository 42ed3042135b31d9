"""Per-category moderation thresholds and actions."""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class CategoryRule:
    threshold: float
    action: str  # warn | block | escalate
    appealable: bool = True


DEFAULT_POLICY: Dict[str, CategoryRule] = {
    "harassment": CategoryRule(0.3, "warn"),
    "harassment/threatening": CategoryRule(0.2, "block"),
    "hate": CategoryRule(0.3, "warn"),
    "hate/threatening": CategoryRule(0.2, "block", appealable=False),
    "self-harm": CategoryRule(0.4, "escalate"),
    "self-harm/intent": CategoryRule(0.3, "escalate", appealable=False),
    "self-harm/instructions": CategoryRule(0.1, "block", appealable=False),
    "sexual": CategoryRule(0.5, "warn"),
    "sexual/minors": CategoryRule(0.01, "block", appealable=False),
    "violence": CategoryRule(0.4, "warn"),
    "violence/graphic": CategoryRule(0.3, "block"),
    "illicit": CategoryRule(0.3, "warn"),
    "illicit/violent": CategoryRule(0.2, "block", appealable=False),
    "spam": CategoryRule(0.6, "warn"),
}

# Any category above this escalates regardless of its own action
HIGH_RISK_THRESHOLD = 0.8
# Number of flagged categories that escalates a warning
MULTIPLE_FLAGS = 3
