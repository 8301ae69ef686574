"""Pytest configuration and shared fixtures."""
import pytest
from datetime import datetime, timedelta, timezone

from app.core.database import Base, build_engine, build_session_factory
from app.db import models  # noqa: F401  (registers tables on Base.metadata)
from app.services.search_analytics import SearchAnalyticsStore
from app.utils.search_metrics import MetricCollector, SearchEvent

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_event(
    query: str = "soap",
    duration_ms: int = 100,
    result_count: int = 1,
    filters=(),
    succeeded: bool = True,
    error_detail=None,
    minutes_ago: float = 1,
    now: datetime = NOW,
) -> SearchEvent:
    """Build a SearchEvent relative to ``now``."""
    return SearchEvent(
        query=query,
        duration_ms=duration_ms,
        result_count=result_count,
        filters_applied=frozenset(filters),
        succeeded=succeeded,
        error_detail=error_detail,
        occurred_at=now - timedelta(minutes=minutes_ago),
    )


@pytest.fixture
def collector():
    """Isolated metrics window."""
    return MetricCollector(capacity=100)


@pytest.fixture
def scenario_events():
    """soap (slow, zero results), soap, lotion (failed)."""
    return [
        make_event("soap", duration_ms=1200, result_count=0),
        make_event("soap", duration_ms=300, result_count=5),
        make_event("lotion", duration_ms=50, result_count=0, succeeded=False, error_detail="timeout"),
    ]


@pytest.fixture
async def test_engine(tmp_path):
    """Create test database engine on a throwaway SQLite file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Create test database session factory."""
    return build_session_factory(test_engine)


@pytest.fixture
def analytics_store(session_factory):
    """Analytics store bound to the test database."""
    return SearchAnalyticsStore(session_factory)
