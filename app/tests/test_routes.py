"""
Route tests for the search analytics API.

Components are swapped through FastAPI dependency overrides; storage,
Redis and Elasticsearch are mocked.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import (
    get_analytics_store,
    get_health_probe,
    get_metric_collector,
    get_query_stats,
    get_report_assembler,
)
from app.api.router import router
from app.core.config import REALTIME_WINDOW_MINUTES, REPORT_TIMEOUT_SECONDS, SLOW_QUERY_THRESHOLD_MS
from app.services.health_probe import ClusterStatus, IndexStats
from app.services.search_analytics import SearchFunnel
from app.utils.aggregator import QueryAggregate
from app.utils.circuit_breaker import circuit_breakers
from app.utils.search_metrics import MetricCollector
from conftest import make_event

NO_CACHE = "no-cache, no-store, must-revalidate"


def build_app() -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/api")
    return app


@pytest.fixture
def mock_store():
    """Analytics store with canned historical results."""
    store = AsyncMock()
    store.top_queries.return_value = [QueryAggregate("soap", 9)]
    store.failed_queries.return_value = []
    store.search_funnel.return_value = SearchFunnel(searches=10, clicks=4, add_to_cart=2, purchases=1)
    store.top_clicked_queries.return_value = []
    store.track_conversion.return_value = True
    store.track_add_to_cart.return_value = True
    return store


@pytest.fixture
def mock_probe():
    """Health probe reporting a healthy cluster."""
    probe = AsyncMock()
    probe.check_connectivity.return_value = True
    probe.check_index_exists.return_value = True
    probe.cluster_health.return_value = ClusterStatus.GREEN
    probe.index_stats.return_value = IndexStats(document_count=7, size_bytes=512)
    probe.version.return_value = "8.11.0"
    return probe


@pytest.fixture
def mock_query_stats():
    stats = AsyncMock()
    stats.get_query_ctr.return_value = {"impressions": 10, "clicks": 3, "ctr": 30.0}
    stats.get_failed_query_counts.return_value = [{"query": "lotion", "count": 6}]
    return stats


@pytest.fixture
def client(mock_store, mock_probe, mock_query_stats):
    """Test client wired to an isolated collector and mocked services."""
    app = build_app()
    collector = MetricCollector(capacity=10)

    app.dependency_overrides[get_metric_collector] = lambda: collector
    app.dependency_overrides[get_analytics_store] = lambda: mock_store
    app.dependency_overrides[get_health_probe] = lambda: mock_probe
    app.dependency_overrides[get_query_stats] = lambda: mock_query_stats

    yield TestClient(app), app, collector
    app.dependency_overrides.clear()
    circuit_breakers["analytics_store"].reset()


class TestSearchEvents:

    def test_record_search(self, client, mock_store, mock_query_stats):
        """Test that a recorded search lands in the window and the durable log."""
        test_client, _, collector = client

        response = test_client.post(
            "/api/search/events",
            json={"query": "soap", "duration_ms": 120, "result_count": 0, "filters": ["brand"]},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "recorded", "window_size": 1}
        assert collector.snapshot()[0].filters_applied == frozenset({"brand"})
        mock_store.log_search.assert_awaited_once()
        mock_query_stats.track_impression.assert_awaited_once_with("soap")
        mock_query_stats.track_failed_query.assert_awaited_once_with("soap")

    def test_record_failed_search(self, client, mock_query_stats):
        test_client, _, collector = client

        response = test_client.post(
            "/api/search/events",
            json={"query": "lotion", "duration_ms": 50, "succeeded": False, "error_detail": "timeout"},
        )

        assert response.status_code == 200
        event = collector.snapshot()[0]
        assert event.succeeded is False
        assert event.error_detail == "timeout"
        mock_query_stats.track_failed_query.assert_not_awaited()

    def test_rejects_negative_duration(self, client):
        test_client, _, _ = client
        response = test_client.post("/api/search/events", json={"query": "soap", "duration_ms": -1})
        assert response.status_code == 422


class TestMetrics:

    def test_metrics_overview(self, client):
        test_client, _, collector = client
        collector.add(make_event("soap", duration_ms=1500, result_count=0, now=datetime.now(timezone.utc)))
        collector.add(make_event("soap", duration_ms=200, result_count=3, now=datetime.now(timezone.utc)))

        response = test_client.get("/api/search/metrics")

        assert response.status_code == 200
        assert response.headers["cache-control"] == NO_CACHE
        metrics = response.json()["metrics"]
        assert metrics["overview"]["totalSearches"] == 2
        assert metrics["slowQueries"][0]["duration"] == 1500
        assert metrics["noResultQueries"] == [{"query": "soap", "count": 1}]
        assert metrics["historicalNoResultQueries"] == [{"query": "lotion", "count": 6}]
        assert metrics["windowSize"] == 2
        assert metrics["windowCapacity"] == 10

    def test_reset_metrics(self, client):
        test_client, _, collector = client
        collector.add(make_event())

        response = test_client.post("/api/search/metrics/reset")

        assert response.status_code == 200
        assert response.json() == {"success": True, "windowSize": 0}
        assert collector.snapshot() == ()

    def test_uninitialized_component_returns_503(self):
        response = TestClient(build_app()).get("/api/search/metrics")
        assert response.status_code == 503


class TestAnalytics:

    def test_full_report(self, client):
        test_client, _, _ = client

        response = test_client.get("/api/search/analytics?days=7&limit=5")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["period"] == {"days": 7}
        assert data["topQueries"] == [{"query": "soap", "count": 9}]
        assert data["funnel"]["clickThroughRate"] == 40.0
        assert data["realtime"]["totalSearches"] == 0

    def test_partial_failure(self, client, mock_store):
        test_client, _, _ = client
        mock_store.top_queries.side_effect = RuntimeError("database is down")

        response = test_client.get("/api/search/analytics")

        assert response.status_code == 200
        data = response.json()
        assert data["topQueries"] == {"status": "failed", "reason": "error"}
        assert data["funnel"]["searches"] == 10

    def test_total_failure(self, client):
        test_client, app, _ = client
        assembler = AsyncMock()
        assembler.assemble.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_report_assembler] = lambda: assembler

        response = test_client.get("/api/search/analytics")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to fetch search analytics"}

    def test_lazy_assembler_uses_configuration(self, client):
        """The assembler built on first request shares the configured limits and breaker."""
        test_client, app, _ = client

        assert test_client.get("/api/search/analytics").status_code == 200

        assembler = app.state.report_assembler
        assert assembler.timeout_seconds == REPORT_TIMEOUT_SECONDS
        assert assembler.realtime_window_minutes == REALTIME_WINDOW_MINUTES
        assert assembler.slow_threshold_ms == SLOW_QUERY_THRESHOLD_MS
        assert assembler.breaker is circuit_breakers["analytics_store"]

    def test_rejects_invalid_period(self, client):
        test_client, _, _ = client
        assert test_client.get("/api/search/analytics?days=0").status_code == 422


class TestHealth:

    def test_healthy(self, client):
        test_client, _, _ = client

        response = test_client.get("/api/search/health")

        assert response.status_code == 200
        assert response.headers["cache-control"] == NO_CACHE
        data = response.json()
        assert data["status"] == "healthy"
        assert data["index"]["documentCount"] == 7
        assert data["elasticsearch"]["version"] == "8.11.0"

    def test_unhealthy(self, client, mock_probe):
        test_client, _, _ = client
        mock_probe.check_connectivity.return_value = False

        response = test_client.get("/api/search/health")

        assert response.status_code == 503
        assert response.headers["cache-control"] == NO_CACHE
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["elasticsearch"]["clusterHealth"] == "unknown"

    def test_probe_error(self, client, monkeypatch):
        test_client, _, _ = client

        async def broken_check(*args, **kwargs):
            raise RuntimeError("probe crashed")

        monkeypatch.setattr("app.routers.analytics.check_health", broken_check)

        response = test_client.get("/api/search/health")

        assert response.status_code == 500
        assert response.headers["cache-control"] == NO_CACHE
        data = response.json()
        assert data["status"] == "error"
        assert data["error"] == "Health check failed"


class TestClicks:

    def test_track_click(self, client, mock_store, mock_query_stats):
        test_client, _, _ = client

        response = test_client.post(
            "/api/search/clicks",
            json={"query": "soap", "product_id": "p-1", "position": 2, "result_count": 8},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"query": "soap", "productId": "p-1", "position": 2}
        mock_store.track_click.assert_awaited_once()
        mock_query_stats.track_click.assert_awaited_once_with("soap")

    def test_conversion_without_click(self, client, mock_store):
        test_client, _, _ = client
        mock_store.track_conversion.return_value = False

        response = test_client.put(
            "/api/search/clicks", json={"query": "soap", "product_id": "p-1", "revenue": 12.5}
        )

        assert response.status_code == 404

    def test_add_to_cart(self, client, mock_store):
        test_client, _, _ = client

        response = test_client.post("/api/search/clicks/cart", json={"query": "soap", "product_id": "p-1"})

        assert response.status_code == 200
        mock_store.track_add_to_cart.assert_awaited_once_with("soap", "p-1")

    def test_query_ctr(self, client):
        test_client, _, _ = client

        response = test_client.get("/api/search/clicks?query=soap")

        assert response.status_code == 200
        assert response.json()["metrics"]["ctr"] == 30.0

    def test_store_error(self, client, mock_store):
        test_client, _, _ = client
        mock_store.top_clicked_queries.side_effect = RuntimeError("db down")

        response = test_client.get("/api/search/clicks")

        assert response.status_code == 500
