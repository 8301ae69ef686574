"""FastAPI application exposing search metrics, analytics reports and backend health."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import router
from app.core.cache import QueryStatsCache, close_redis, init_redis
from app.core.config import (
    APP_DESCRIPTION,
    APP_NAME,
    APP_VERSION,
    API_HOST,
    API_PORT,
    API_RELOAD,
    ELASTICSEARCH_PASSWORD,
    ELASTICSEARCH_TIMEOUT,
    ELASTICSEARCH_URL,
    ELASTICSEARCH_USERNAME,
    ENABLE_RETENTION_SCHEDULER,
    LOG_FORMAT,
    LOG_LEVEL,
    METRICS_WINDOW_CAPACITY,
    REALTIME_WINDOW_MINUTES,
    REPORT_TIMEOUT_SECONDS,
    SEARCH_LOG_RETENTION_DAYS,
    SLOW_QUERY_THRESHOLD_MS,
)
from app.core.database import async_session, close_db, init_db
from app.services.background_scheduler import BackgroundScheduler
from app.services.health_probe import ElasticsearchHealthProbe
from app.services.report_assembler import AnalyticsReportAssembler
from app.services.search_analytics import SearchAnalyticsStore
from app.utils.circuit_breaker import circuit_breakers
from app.utils.search_metrics import MetricCollector

# Configure logging
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    # ==================== STARTUP ====================
    logger.info("🚀 Starting Search Insights application...")

    # The metrics window lives for the whole process
    collector = MetricCollector(capacity=METRICS_WINDOW_CAPACITY)
    app.state.metric_collector = collector
    logger.info(f"📊 Search metrics window ready (capacity={collector.capacity})")

    # Initialize database
    logger.info("💾 Initializing database...")
    try:
        await init_db()
        logger.info("✅ Database initialized")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")

    store = SearchAnalyticsStore(async_session)
    app.state.analytics_store = store
    app.state.report_assembler = AnalyticsReportAssembler(
        collector,
        store,
        realtime_window_minutes=REALTIME_WINDOW_MINUTES,
        slow_threshold_ms=SLOW_QUERY_THRESHOLD_MS,
        timeout_seconds=REPORT_TIMEOUT_SECONDS,
        breaker=circuit_breakers["analytics_store"],
    )

    # Initialize Redis counters
    logger.info("🎯 Connecting to Redis...")
    redis_client = await init_redis()
    app.state.query_stats = QueryStatsCache(redis_client)
    if redis_client is None:
        logger.warning("⚠️ Redis unavailable, query counters disabled (non-critical)")

    # Search backend health probe
    probe = ElasticsearchHealthProbe(
        ELASTICSEARCH_URL,
        username=ELASTICSEARCH_USERNAME,
        password=ELASTICSEARCH_PASSWORD,
        timeout=ELASTICSEARCH_TIMEOUT,
    )
    app.state.health_probe = probe
    logger.info(f"🔎 Health probe targeting {ELASTICSEARCH_URL}")

    scheduler = None
    if ENABLE_RETENTION_SCHEDULER:
        scheduler = BackgroundScheduler(store, SEARCH_LOG_RETENTION_DAYS)
        try:
            scheduler.start()
        except Exception as e:
            logger.error(f"❌ Background scheduler startup failed: {e}")

    logger.info("🌟 Application startup complete")

    yield

    # ==================== SHUTDOWN ====================
    logger.info("🙋 Shutting down application...")

    if scheduler is not None:
        scheduler.shutdown()

    try:
        await probe.close()
    except Exception as e:
        logger.warning(f"⚠️ Health probe close error (non-critical): {e}")

    logger.info("🎯 Disconnecting from Redis...")
    try:
        await close_redis()
        logger.info("✅ Redis disconnected")
    except Exception as e:
        logger.warning(f"⚠️ Redis disconnect error (non-critical): {e}")

    await close_db()

    logger.info("🙋 Application shutdown complete")


app = FastAPI(
    title=APP_NAME,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Service banner."""
    return {
        "status": "ok",
        "name": APP_NAME,
        "version": APP_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD,
    )
