"""News and trend webhook receiver."""

import json
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_db
from spotlight.core.cache import RedisCache
from spotlight.core.errors import ErrorCode, SpotlightError
from spotlight.core.logging import get_logger
from spotlight.core.time import utcnow
from spotlight.trends import service
from spotlight.trends.detector import TrendDetector, default_window

logger = get_logger(__name__)

router = APIRouter(prefix="/api/news", tags=["webhook"])

SUPPORTED_TYPES = ["news_articles", *service.WEBHOOK_EVENTS]


class WebhookArticle(BaseModel):
    title: str = Field(min_length=1)
    content: Optional[str] = None
    url: str = Field(pattern=r"^https?://")
    author: Optional[str] = None
    published_at: datetime
    categories: List[str] = Field(default_factory=list)
    region: Optional[str] = None


class NewsWebhook(BaseModel):
    source: str = Field(min_length=1)
    articles: List[WebhookArticle] = Field(min_length=1)
    timestamp: datetime


class TrendPayload(BaseModel):
    topic: str = Field(min_length=1)
    velocity: float = 0.0
    confidence: float = 0.0
    sources: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    region: Optional[str] = None


class TrendWebhook(BaseModel):
    type: str
    trend: TrendPayload
    timestamp: datetime


@router.post("/webhook")
async def news_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(default=None),
    x_webhook_source: str = Header(default="unknown"),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache_dep),
):
    body = await request.body()
    if not service.verify_signature(body, x_webhook_signature, x_webhook_source):
        raise SpotlightError(ErrorCode.INVALID_SIGNATURE, "Invalid webhook signature")

    try:
        data = json.loads(body or b"{}")
    except ValueError:
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, "Body is not valid JSON")
    if not isinstance(data, dict):
        raise SpotlightError(ErrorCode.VALIDATION_ERROR, "Body must be a JSON object")

    webhook_type = data.get("type") or "news_articles"
    try:
        if webhook_type == "news_articles":
            result = await _handle_articles(NewsWebhook.model_validate(data), db, cache)
        elif webhook_type in service.WEBHOOK_EVENTS:
            payload = TrendWebhook.model_validate(data)
            await service.handle_trend_event(db, payload.type, payload.trend.model_dump(), cache=cache)
            await cache.invalidate_tags(["trends"])
            result = {"type": payload.type, "topic": payload.trend.topic}
        else:
            return JSONResponse(
                status_code=400,
                content={"error": "Unsupported webhook type", "supported_types": SUPPORTED_TYPES},
            )
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Webhook validation error",
                "details": [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                            for err in e.errors()],
            },
        )

    logger.info(f"Webhook {webhook_type} from {x_webhook_source} processed")
    return {"success": True, "result": result, "timestamp": utcnow().isoformat()}


async def _handle_articles(payload: NewsWebhook, db: AsyncSession, cache: RedisCache):
    articles = [a.model_dump() for a in payload.articles]
    counts = await service.ingest_articles(db, payload.source, articles)
    if counts["new"] > service.DETECTION_THRESHOLD:
        analysis = await TrendDetector(db, cache).detect(default_window())
        counts["topics_detected"] = analysis.stats["total_topics"]
    elif counts["new"]:
        await cache.invalidate_tags(["trends"])
    return counts
