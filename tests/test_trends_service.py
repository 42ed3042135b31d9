"""Tests for the trend lifecycle, webhook signatures and news ingestion."""

import hashlib
import hmac
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.models import NewsItem, Trend
from spotlight.trends import service as trends_service
from spotlight.trends.service import (
    current_trends,
    expire_trend,
    handle_trend_event,
    ingest_articles,
    update_trend,
    upsert_trend,
    verify_signature,
)


def _sign(secret, body):
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestSignature:

    @pytest.fixture(autouse=True)
    def no_default_secret(self, monkeypatch):
        monkeypatch.setattr(trends_service.settings, "webhook_secret_default", None)
        monkeypatch.delenv("WEBHOOK_SECRET_WIRE", raising=False)

    def test_valid_signature(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET_WIRE", "s3cret")
        body = b'{"type": "news_articles"}'
        assert verify_signature(body, _sign("s3cret", body), "wire")
        assert verify_signature(body, "sha256=" + _sign("s3cret", body), "wire")

    def test_tampered_body(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET_WIRE", "s3cret")
        signature = _sign("s3cret", b"original")
        assert not verify_signature(b"tampered", signature, "wire")

    def test_missing_signature_with_secret(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET_WIRE", "s3cret")
        assert not verify_signature(b"{}", None, "wire")

    def test_no_secret_accepts(self):
        assert verify_signature(b"{}", None, "wire")

    def test_default_secret(self, monkeypatch):
        monkeypatch.setattr(trends_service.settings, "webhook_secret_default", "fallback")
        assert verify_signature(b"{}", _sign("fallback", b"{}"), "other-source")


class TestUpsert:

    @pytest.mark.asyncio
    async def test_creates_active_trend(self, session, cache, now):
        with patch("spotlight.trends.service.get_trend_by_topic", new_callable=AsyncMock,
                   return_value=None), \
                patch("spotlight.trends.service.utcnow", return_value=now):
            trend = await upsert_trend(session, {"topic": "mars", "velocity": 2.5,
                                                 "keywords": ["mars"], "growth": 1.0}, cache=cache)

        assert isinstance(trend, Trend)
        assert trend.is_active is True
        assert trend.velocity == 2.5
        assert trend.expires_at == now + timedelta(hours=trends_service.settings.trend_ttl_hours)
        session.add.assert_called_once_with(trend)
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_reactivates_expired(self, session, cache, now):
        existing = SimpleNamespace(topic="mars", is_active=False, velocity=1.0,
                                   expires_at=now - timedelta(hours=1))
        with patch("spotlight.trends.service.get_trend_by_topic", new_callable=AsyncMock,
                   return_value=existing), \
                patch("spotlight.trends.service.utcnow", return_value=now):
            trend = await upsert_trend(session, {"topic": "mars", "velocity": 4.0}, cache=cache)

        assert trend is existing
        assert trend.is_active is True
        assert trend.velocity == 4.0
        assert trend.expires_at > now
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_invalidates_trend_cache(self, session, cache):
        await cache.set("current:10:global:all", [{"topic": "old"}], namespace="trends", tags=["trends"])
        with patch("spotlight.trends.service.get_trend_by_topic", new_callable=AsyncMock,
                   return_value=None):
            await upsert_trend(session, {"topic": "mars"}, cache=cache)
        assert await cache.get("current:10:global:all", namespace="trends") is None


class TestEvents:

    @pytest.mark.asyncio
    async def test_update_ignores_inactive(self, session, cache):
        inactive = SimpleNamespace(topic="mars", is_active=False, velocity=1.0)
        with patch("spotlight.trends.service.get_trend_by_topic", new_callable=AsyncMock,
                   return_value=inactive):
            assert await update_trend(session, {"topic": "mars", "velocity": 9.0}, cache=cache) is None
        assert inactive.velocity == 1.0

    @pytest.mark.asyncio
    async def test_expire(self, session, cache):
        active = SimpleNamespace(topic="mars", is_active=True)
        with patch("spotlight.trends.service.get_trend_by_topic", new_callable=AsyncMock,
                   return_value=active):
            assert await expire_trend(session, "mars", cache=cache) is True
        assert active.is_active is False

    @pytest.mark.asyncio
    async def test_dispatch(self, session, cache):
        with patch("spotlight.trends.service.upsert_trend", new_callable=AsyncMock) as upsert, \
                patch("spotlight.trends.service.expire_trend", new_callable=AsyncMock) as expire:
            await handle_trend_event(session, "trend_detected", {"topic": "mars"}, cache=cache)
            await handle_trend_event(session, "trend_expired", {"topic": "mars"}, cache=cache)
        upsert.assert_awaited_once()
        expire.assert_awaited_once_with(session, "mars", cache=cache)

    @pytest.mark.asyncio
    async def test_unknown_event(self, session, cache):
        with pytest.raises(SpotlightError) as exc:
            await handle_trend_event(session, "trend_exploded", {"topic": "mars"}, cache=cache)
        assert exc.value.code == ErrorCode.VALIDATION_ERROR


class TestIngest:

    @pytest.mark.asyncio
    async def test_skips_known_and_repeated_urls(self, session):
        articles = [
            {"title": "Known", "url": "https://n.example/1"},
            {"title": "Fresh", "url": "https://n.example/2", "categories": ["science"],
             "published_at": "2025-03-01T10:00:00Z"},
            {"title": "Fresh again", "url": "https://n.example/2"},
        ]
        with patch("spotlight.trends.service.existing_news_urls", new_callable=AsyncMock,
                   return_value={"https://n.example/1"}):
            result = await ingest_articles(session, "wire", articles)

        assert result == {"new": 1, "duplicates": 2}
        stored = session.add.call_args[0][0]
        assert isinstance(stored, NewsItem)
        assert stored.category == "science"
        assert stored.source == "wire"
        assert stored.published_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_batches(self, session):
        articles = [{"title": f"a{i}", "url": f"https://n.example/{i}"} for i in range(25)]
        with patch("spotlight.trends.service.existing_news_urls", new_callable=AsyncMock,
                   return_value=set()) as known:
            result = await ingest_articles(session, "wire", articles)
        assert result["new"] == 25
        assert known.await_count == 3
        assert session.commit.await_count == 3


@pytest.mark.asyncio
async def test_current_trends_cached(session, cache):
    trend = SimpleNamespace(id=1, topic="mars", description=None, keywords=["mars"], velocity=1.0,
                            confidence=0.5, sources=[], categories=["science"], region=None,
                            is_active=True, peak_at=None, expires_at=None)
    with patch("spotlight.trends.service.list_current_trends", new_callable=AsyncMock,
               return_value=[trend]) as fetch:
        first = await current_trends(session, cache=cache)
        second = await current_trends(session, cache=cache)
    assert first == second
    assert first[0]["topic"] == "mars"
    fetch.assert_awaited_once()
