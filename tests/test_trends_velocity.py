"""Tests for velocity, growth and confidence metrics."""

from datetime import timedelta

import pytest

from spotlight.trends.velocity import (
    confidence,
    growth,
    time_spread_seconds,
    time_weight,
    topic_velocity,
    trend_score,
)


class TestTimeWeight:

    def test_fresh_mention_full_weight(self):
        assert time_weight(0, 24) == 1.0

    def test_weight_floor_inside_window(self):
        assert time_weight(23.9, 24) == pytest.approx(0.1)

    def test_outside_window_is_zero(self):
        assert time_weight(25, 24) == 0.0

    def test_non_increasing_with_age(self):
        weights = [time_weight(h, 24) for h in range(0, 30)]
        assert all(a >= b for a, b in zip(weights, weights[1:]))


class TestVelocity:

    def test_velocity_is_weighted_mentions_per_hour(self, now):
        stamps = [now, now, now]
        assert topic_velocity(stamps, now, 24) == pytest.approx(3 / 24)

    def test_no_growth_without_new_mentions(self, now):
        stamps = [now - timedelta(hours=h) for h in (0.5, 1, 3, 8)]
        readings = [topic_velocity(stamps, now + timedelta(hours=step), 24) for step in range(0, 30, 2)]
        assert all(a >= b for a, b in zip(readings, readings[1:]))
        assert readings[-1] == 0.0

    def test_zero_window(self, now):
        assert topic_velocity([now], now, 0) == 0.0


class TestGrowth:

    def test_all_recent_is_full_growth(self, now):
        assert growth([now - timedelta(hours=1)] * 3, now, 24) == 1.0

    def test_no_mentions(self, now):
        assert growth([], now, 24) == 0.0

    def test_shrinking_topic_is_negative(self, now):
        stamps = [now - timedelta(hours=2)] + [now - timedelta(hours=20)] * 3
        assert growth(stamps, now, 24) == pytest.approx((1 - 3) / 3)

    def test_mentions_outside_window_ignored(self, now):
        stamps = [now - timedelta(hours=1), now - timedelta(hours=48)]
        assert growth(stamps, now, 24) == 1.0


def test_trend_score_prefers_more_sources():
    assert trend_score(5, 4, 0.0) > trend_score(5, 2, 0.0)
    assert trend_score(5, 2, -1.0) == trend_score(5, 2, 0.0)


def test_time_spread(now):
    assert time_spread_seconds([now]) == 0.0
    assert time_spread_seconds([now, now - timedelta(hours=2)]) == pytest.approx(7200)


def test_confidence_bounds():
    assert confidence(0, 0, 0) == 0.0
    assert confidence(10, 10 * 3600, 50) == 1.0
    assert 0 < confidence(2, 3600, 5) < 1
