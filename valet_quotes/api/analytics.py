"""Analytics reports over recorded outcomes, cached in Redis"""
import json
import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query

from valet_quotes.core.config import settings
from valet_quotes.core.enums import ServiceType
from valet_quotes.core.metrics import cache_hits, cache_misses
from valet_quotes.core.redis import get_redis
from valet_quotes.schemas.analytics import (
    ConversionRates,
    DashboardMetrics,
    DemandForecast,
    MarketPosition,
    PerformanceMetrics,
)
from valet_quotes.services import analytics
from valet_quotes.services.history import HistoricalStore
from valet_quotes.api.deps import get_history_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/analytics", tags=["analytics"])


def _check_timeframe(timeframe: str) -> str:
    try:
        analytics.parse_timeframe(timeframe)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return timeframe


async def _cached_report(name: str, timeframe: str, store: HistoricalStore, build: Callable):
    cache_key = f"analytics:{name}:{timeframe}"
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(cache_key)
            if cached:
                cache_hits.labels(cache_key=name).inc()
                return json.loads(cached)
            cache_misses.labels(cache_key=name).inc()
        except Exception as e:
            logger.warning(f"Cache retrieval failed: {e}")

    records = await store.query()
    report = build(records, datetime.now(timezone.utc))

    if redis is not None:
        try:
            await redis.set(
                cache_key,
                json.dumps(report.model_dump(mode="json")),
                ex=settings.ANALYTICS_CACHE_TTL,
            )
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return report


@router.get("/dashboard", response_model=DashboardMetrics)
async def dashboard(
    timeframe: str = Query("30d"),
    store: HistoricalStore = Depends(get_history_store),
):
    timeframe = _check_timeframe(timeframe)
    return await _cached_report(
        "dashboard", timeframe, store,
        lambda records, now: analytics.dashboard_metrics(records, timeframe, now),
    )


@router.get("/conversion", response_model=ConversionRates)
async def conversion(store: HistoricalStore = Depends(get_history_store)):
    return await _cached_report(
        "conversion", "all", store,
        lambda records, now: analytics.conversion_rates(records),
    )


@router.get("/performance", response_model=PerformanceMetrics)
async def performance(store: HistoricalStore = Depends(get_history_store)):
    return await _cached_report("performance", "all", store, analytics.performance_metrics)


@router.get("/forecast", response_model=DemandForecast)
async def forecast(store: HistoricalStore = Depends(get_history_store)):
    return await _cached_report(
        "forecast", "all", store,
        lambda records, now: analytics.demand_forecast(records),
    )


@router.get("/pricing/{service_type}")
async def pricing(service_type: ServiceType, store: HistoricalStore = Depends(get_history_store)):
    records = await store.query()
    now = datetime.now(timezone.utc)
    return {
        "insights": analytics.pricing_insights(records, service_type, now).model_dump(mode="json"),
        "effectiveness": analytics.pricing_effectiveness(records, service_type).model_dump(mode="json"),
    }


@router.get("/market/{service_type}", response_model=MarketPosition)
async def market(service_type: ServiceType, store: HistoricalStore = Depends(get_history_store)):
    records = await store.query()
    return analytics.market_position(records, service_type)
