"""
FastAPI dependencies for the HTTP interface.

Components are created once in the application lifespan and attached to
``app.state``; routes receive them through these providers so tests can
swap in isolated instances.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from app.core.cache import QueryStatsCache
from app.core.config import REALTIME_WINDOW_MINUTES, REPORT_TIMEOUT_SECONDS, SLOW_QUERY_THRESHOLD_MS
from app.services.health_probe import HealthProbe
from app.services.report_assembler import AnalyticsReportAssembler
from app.services.search_analytics import SearchAnalyticsStore
from app.utils.circuit_breaker import circuit_breakers
from app.utils.search_metrics import MetricCollector

logger = logging.getLogger(__name__)


def _state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.error(f"Component '{name}' requested before initialization")
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return component


def get_metric_collector(request: Request) -> MetricCollector:
    """Get the process-wide search metrics window."""
    return _state(request, "metric_collector")


def get_analytics_store(request: Request) -> SearchAnalyticsStore:
    """Get the durable analytics store."""
    return _state(request, "analytics_store")


def get_health_probe(request: Request) -> HealthProbe:
    """Get the search backend health probe."""
    return _state(request, "health_probe")


def get_query_stats(request: Request) -> QueryStatsCache:
    """Get the Redis query counters (a disabled cache when Redis is absent)."""
    stats: Optional[QueryStatsCache] = getattr(request.app.state, "query_stats", None)
    return stats or QueryStatsCache(None)


def get_report_assembler(
    request: Request,
    collector: MetricCollector = Depends(get_metric_collector),
    store: SearchAnalyticsStore = Depends(get_analytics_store),
) -> AnalyticsReportAssembler:
    """Get the report assembler, built lazily around the collector and store."""
    assembler = getattr(request.app.state, "report_assembler", None)
    if assembler is None:
        assembler = AnalyticsReportAssembler(
            collector,
            store,
            realtime_window_minutes=REALTIME_WINDOW_MINUTES,
            slow_threshold_ms=SLOW_QUERY_THRESHOLD_MS,
            timeout_seconds=REPORT_TIMEOUT_SECONDS,
            breaker=circuit_breakers["analytics_store"],
        )
        request.app.state.report_assembler = assembler
    return assembler
