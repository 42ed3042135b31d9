"""Velocity, growth and confidence metrics for trending topics.

velocity    time-weighted mentions per hour inside the window. Each mention's
            weight shrinks with age and drops to zero when it leaves the
            window, so velocity never rises unless new mentions arrive.
growth      relative change between the older and the recent half of the
            window; drives emerging/declining classification.
"""

import math
from datetime import datetime
from typing import Iterable, List

from spotlight.core.time import hours_between

MIN_TIME_WEIGHT = 0.1
MAX_SOURCES_FOR_CONFIDENCE = 5
SPREAD_SECONDS_FOR_CONFIDENCE = 6 * 3600
MENTIONS_FOR_CONFIDENCE = 20


def time_weight(age_hours: float, window_hours: float) -> float:
    """max(0.1, 1 - (age/window)^2) inside the window, 0 outside."""
    if window_hours <= 0 or age_hours > window_hours:
        return 0.0
    normalized = max(age_hours, 0.0) / window_hours
    return max(MIN_TIME_WEIGHT, 1.0 - normalized ** 2)


def weighted_mentions(timestamps: Iterable[datetime], now: datetime, window_hours: float) -> float:
    return sum(time_weight(hours_between(ts, now), window_hours) for ts in timestamps)


def topic_velocity(timestamps: Iterable[datetime], now: datetime, window_hours: float) -> float:
    if window_hours <= 0:
        return 0.0
    return weighted_mentions(timestamps, now, window_hours) / window_hours


def growth(timestamps: Iterable[datetime], now: datetime, window_hours: float) -> float:
    recent = older = 0
    half = window_hours / 2.0
    for ts in timestamps:
        age = hours_between(ts, now)
        if age < 0 or age > window_hours:
            continue
        if age <= half:
            recent += 1
        else:
            older += 1
    if older == 0:
        return 1.0 if recent > 0 else 0.0
    return (recent - older) / older


def trend_score(frequency: float, source_count: int, growth_rate: float) -> float:
    return math.log(frequency + 1) * math.log(source_count + 1) * (1 + max(0.0, growth_rate))


def time_spread_seconds(timestamps: List[datetime]) -> float:
    if len(timestamps) < 2:
        return 0.0
    return hours_between(min(timestamps), max(timestamps)) * 3600.0


def confidence(source_count: int, spread_seconds: float, mentions: float) -> float:
    source_score = min(1.0, source_count / MAX_SOURCES_FOR_CONFIDENCE)
    time_score = min(1.0, spread_seconds / SPREAD_SECONDS_FOR_CONFIDENCE)
    mention_score = min(1.0, mentions / MENTIONS_FOR_CONFIDENCE)
    return (source_score + time_score + mention_score) / 3.0
