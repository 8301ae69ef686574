"""Search analytics, real-time metrics and backend health endpoints."""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse

from app.api.dependencies import (
    get_analytics_store,
    get_health_probe,
    get_metric_collector,
    get_query_stats,
    get_report_assembler,
)
from app.core.cache import QueryStatsCache
from app.core.config import (
    ELASTICSEARCH_INDEX,
    ELASTICSEARCH_VERSION,
    ENABLE_SEARCH_LOG_PERSISTENCE,
    REALTIME_WINDOW_MINUTES,
    SLOW_QUERY_THRESHOLD_MS,
)
from app.core.schemas import ErrorResponse, SearchEventPayload, SearchEventResponse
from app.services.health_probe import HealthProbe, check_health
from app.services.report_assembler import AnalyticsReportAssembler
from app.services.search_analytics import SearchAnalyticsStore
from app.utils import aggregator
from app.utils.search_metrics import MetricCollector, SearchEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search-analytics"])

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


# ============================================================================
# Recording
# ============================================================================

async def _persist_search(
    event: SearchEvent,
    store: SearchAnalyticsStore,
    query_stats: QueryStatsCache,
) -> None:
    """Write a search to the durable log and the Redis counters."""
    if ENABLE_SEARCH_LOG_PERSISTENCE:
        try:
            await store.log_search(event)
        except Exception as e:
            logger.error(f"Failed to persist search log: {e}")

    await query_stats.track_impression(event.query)
    if event.succeeded and event.result_count == 0:
        await query_stats.track_failed_query(event.query)


@router.post("/events", response_model=SearchEventResponse)
async def record_search(
    payload: SearchEventPayload,
    background_tasks: BackgroundTasks,
    collector: MetricCollector = Depends(get_metric_collector),
    store: SearchAnalyticsStore = Depends(get_analytics_store),
    query_stats: QueryStatsCache = Depends(get_query_stats),
):
    """Record a completed search in the real-time window and the durable log."""
    event = SearchEvent.record(
        query=payload.query,
        duration_ms=payload.duration_ms,
        result_count=payload.result_count,
        filters=payload.filters,
        error=None if payload.succeeded else (payload.error_detail or ""),
    )
    collector.add(event)
    background_tasks.add_task(_persist_search, event, store, query_stats)

    return SearchEventResponse(status="recorded", window_size=len(collector))


# ============================================================================
# Reporting
# ============================================================================

@router.get("/analytics")
async def search_analytics(
    days: int = Query(30, ge=1, le=365, description="Historical period in days"),
    limit: int = Query(20, ge=1, le=100, description="Maximum rows per ranked section"),
    assembler: AnalyticsReportAssembler = Depends(get_report_assembler),
):
    """
    Admin-facing search intelligence.

    Historical top queries, failed queries and the conversion funnel over
    ``days``, plus zero-result queries and the real-time summary of the last
    hour. Sections that fail are returned as failure markers.
    """
    try:
        report = await assembler.assemble(days=days, limit=limit)
    except Exception:
        logger.exception("Search analytics error")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to fetch search analytics").model_dump(),
        )

    if report.failed_sections:
        logger.warning(f"⚠️ Partial analytics report, failed sections: {report.failed_sections}")
    return report.to_dict()


@router.get("/metrics")
async def search_metrics(
    collector: MetricCollector = Depends(get_metric_collector),
    query_stats: QueryStatsCache = Depends(get_query_stats),
):
    """Real-time overview of the in-memory window.

    ``historicalNoResultQueries`` is the Redis zero-result ranking, which
    outlives the window and process restarts.
    """
    try:
        snapshot = collector.snapshot()
        summary = aggregator.summarize(
            snapshot,
            window_minutes=REALTIME_WINDOW_MINUTES,
            slow_threshold_ms=SLOW_QUERY_THRESHOLD_MS,
        )
        slow = aggregator.slow_queries(
            snapshot, SLOW_QUERY_THRESHOLD_MS, window_minutes=REALTIME_WINDOW_MINUTES
        )
        slow.sort(key=lambda e: -e.duration_ms)
        no_results = aggregator.zero_result_query_counts(snapshot, limit=10, window_minutes=24 * 60)
        historical_no_results = await query_stats.get_failed_query_counts(limit=10)
    except Exception:
        logger.exception("Metrics error")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to compute search metrics").model_dump(),
            headers=NO_CACHE_HEADERS,
        )

    return JSONResponse(
        content={
            "success": True,
            "metrics": {
                "overview": summary.to_dict(),
                "slowQueries": [
                    {"query": e.query, "duration": e.duration_ms, "timestamp": e.occurred_at.isoformat()}
                    for e in slow[:10]
                ],
                "noResultQueries": [q.to_dict() for q in no_results],
                "historicalNoResultQueries": historical_no_results,
                "windowSize": len(snapshot),
                "windowCapacity": collector.capacity,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=NO_CACHE_HEADERS,
    )


@router.post("/metrics/reset")
async def reset_metrics(collector: MetricCollector = Depends(get_metric_collector)):
    """Clear the real-time window (administrative/testing only)."""
    collector.reset()
    return {"success": True, "windowSize": len(collector)}


# ============================================================================
# Health
# ============================================================================

@router.get("/health")
async def search_health(probe: HealthProbe = Depends(get_health_probe)):
    """Search backend health: connectivity, cluster status and index stats."""
    start = time.monotonic()
    try:
        snapshot = await check_health(probe, ELASTICSEARCH_INDEX, ELASTICSEARCH_VERSION)
    except Exception:
        logger.exception("Health check error")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "responseTime": int((time.monotonic() - start) * 1000),
                "error": "Health check failed",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            headers=NO_CACHE_HEADERS,
        )

    return JSONResponse(
        status_code=200 if snapshot.is_healthy else 503,
        content=snapshot.to_dict(),
        headers=NO_CACHE_HEADERS,
    )
