"""Trend endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.api.deps import get_cache_dep, get_current_user, get_db
from spotlight.core.cache import RedisCache
from spotlight.trends import service
from spotlight.trends.detector import TrendDetector, get_current_trending

router = APIRouter(prefix="/api/trends", tags=["trends"])

WINDOW_PATTERN = "^(1h|6h|24h|7d)$"
RANGE_PATTERN = "^(1h|24h|7d|30d)$"


@router.get("/current")
async def current(limit: int = Query(default=10, ge=1, le=50), region: Optional[str] = None,
                  category: Optional[str] = None, db: AsyncSession = Depends(get_db),
                  cache: RedisCache = Depends(get_cache_dep)):
    return {"trends": await service.current_trends(db, limit, region, category, cache=cache)}


@router.get("/category/{category}")
async def by_category(category: str, limit: int = Query(default=10, ge=1, le=50),
                      time_range: str = Query(default="24h", pattern=RANGE_PATTERN),
                      db: AsyncSession = Depends(get_db)):
    return {"trends": await service.trends_by_category(db, category, limit, time_range)}


@router.get("/stats")
async def stats(time_range: str = Query(default="24h", pattern=RANGE_PATTERN),
                db: AsyncSession = Depends(get_db)):
    return await service.trend_stats(db, time_range)


@router.get("/analysis")
async def analysis(window: str = Query(default="24h", pattern=WINDOW_PATTERN),
                   region: Optional[str] = None, db: AsyncSession = Depends(get_db),
                   cache: RedisCache = Depends(get_cache_dep)):
    return await get_current_trending(db, window, region, cache=cache)


@router.post("/detect")
async def detect(window: str = Query(default="24h", pattern=WINDOW_PATTERN),
                 region: Optional[str] = None, _: str = Depends(get_current_user),
                 db: AsyncSession = Depends(get_db), cache: RedisCache = Depends(get_cache_dep)):
    result = await TrendDetector(db, cache).detect(window, region)
    return result.to_dict()
