"""Tests for the bounded search metrics window."""
import threading
from datetime import datetime, timezone

import pytest

from app.utils.search_metrics import MetricCollector, SearchEvent, UNKNOWN_ERROR
from conftest import make_event


class TestSearchEvent:
    """SearchEvent normalization."""

    def test_successful_event_drops_error_detail(self):
        event = SearchEvent(query="soap", duration_ms=10, result_count=2, error_detail="boom")
        assert event.succeeded is True
        assert event.error_detail is None

    def test_failed_event_always_has_error_detail(self):
        event = SearchEvent(query="soap", duration_ms=10, result_count=0, succeeded=False)
        assert event.error_detail == UNKNOWN_ERROR

    def test_negative_values_are_clamped(self):
        event = SearchEvent(query="soap", duration_ms=-5, result_count=-1)
        assert event.duration_ms == 0
        assert event.result_count == 0

    def test_filters_become_frozenset(self):
        event = SearchEvent(query="", duration_ms=1, result_count=0, filters_applied=["brand", "brand", "price"])
        assert event.filters_applied == frozenset({"brand", "price"})

    def test_naive_timestamp_is_treated_as_utc(self):
        event = SearchEvent(query="q", duration_ms=1, result_count=0, occurred_at=datetime(2026, 1, 1))
        assert event.occurred_at.tzinfo == timezone.utc

    def test_record_marks_failure_when_error_given(self):
        ok = SearchEvent.record("soap", 12, 3, filters=["brand"])
        failed = SearchEvent.record("soap", 12, error="timeout")
        assert ok.succeeded and ok.filters_applied == frozenset({"brand"})
        assert not failed.succeeded and failed.error_detail == "timeout"

    def test_event_is_immutable(self):
        event = make_event()
        with pytest.raises(Exception):
            event.query = "other"


class TestMetricCollector:
    """MetricCollector window behavior."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            MetricCollector(capacity=0)

    def test_default_capacity(self):
        assert MetricCollector().capacity == 1000

    def test_fifo_eviction_keeps_most_recent(self):
        collector = MetricCollector(capacity=5)
        events = [make_event(query=f"q{i}") for i in range(12)]
        for event in events:
            collector.add(event)

        snapshot = collector.snapshot()
        assert len(snapshot) == 5
        assert list(snapshot) == events[-5:]

    def test_snapshot_is_a_copy(self, collector):
        collector.add(make_event("a"))
        snapshot = collector.snapshot()
        collector.add(make_event("b"))

        assert isinstance(snapshot, tuple)
        assert [e.query for e in snapshot] == ["a"]
        assert len(collector) == 2

    def test_reset_then_snapshot_is_empty(self, collector):
        collector.add(make_event())
        collector.reset()
        assert collector.snapshot() == ()

    def test_reset_then_add_round_trip(self, collector):
        collector.add(make_event("old"))
        collector.reset()
        event = make_event("new")
        collector.add(event)
        assert collector.snapshot() == (event,)

    def test_concurrent_writers_respect_capacity(self):
        collector = MetricCollector(capacity=50)
        snapshots = []

        def writer(worker: int):
            for i in range(200):
                collector.add(make_event(query=f"w{worker}-{i}"))

        def reader():
            for _ in range(50):
                snapshots.append(len(collector.snapshot()))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        threads.append(threading.Thread(target=reader))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(collector) == 50
        assert all(size <= 50 for size in snapshots)
