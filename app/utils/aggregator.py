"""Statistics over snapshots of recent search events.

Every function here is pure: it takes a snapshot (any sequence of
SearchEvent) and computes a derived value. ``window_minutes`` restricts the
computation to events that occurred within the last N minutes relative to
``now``; ``None`` means the whole snapshot is in scope. An empty scope always
yields zero/empty results.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from app.utils.search_metrics import SearchEvent

DEFAULT_SLOW_THRESHOLD_MS = 1000
DEFAULT_REALTIME_WINDOW_MINUTES = 60
POPULAR_QUERIES_LIMIT = 10
SLOW_QUERIES_LIMIT = 5
ZERO_RESULT_QUERIES_LIMIT = 50


@dataclass(frozen=True)
class QueryAggregate:
    """Normalized query text with its occurrence count."""

    query: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "count": self.count}


@dataclass
class RealtimeSummary:
    """Canonical real-time report bundle."""

    total_searches: int = 0
    average_duration: float = 0.0
    success_rate: int = 0
    average_result_count: float = 0.0
    popular_queries: List[QueryAggregate] = field(default_factory=list)
    slow_queries: List[SearchEvent] = field(default_factory=list)
    filters_usage: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSearches": self.total_searches,
            "averageDuration": round(self.average_duration, 2),
            "successRate": self.success_rate,
            "averageResultCount": round(self.average_result_count, 2),
            "popularQueries": [q.to_dict() for q in self.popular_queries],
            "slowQueries": [
                {
                    "query": e.query,
                    "duration": e.duration_ms,
                    "timestamp": e.occurred_at.isoformat(),
                }
                for e in self.slow_queries
            ],
            "filtersUsage": dict(self.filters_usage),
        }


def normalize_query(query: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return " ".join((query or "").lower().split())


def in_window(
    events: Sequence[SearchEvent],
    window_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[SearchEvent]:
    """Events that occurred within the last ``window_minutes``."""
    if window_minutes is None:
        return list(events)
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(minutes=window_minutes)
    return [e for e in events if e.occurred_at >= since]


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def average_duration(events, window_minutes=None, now=None) -> float:
    """Mean ``duration_ms`` over the scope; 0.0 when empty."""
    scope = in_window(events, window_minutes, now)
    return _mean([max(0, e.duration_ms) for e in scope])


def success_rate(events, window_minutes=None, now=None) -> int:
    """Percentage of successful searches, rounded half-up to an integer."""
    scope = in_window(events, window_minutes, now)
    if not scope:
        return 0
    succeeded = sum(1 for e in scope if e.succeeded)
    return int(100 * succeeded / len(scope) + 0.5)


def average_result_count(events, window_minutes=None, now=None) -> float:
    """Mean ``result_count`` over successful searches only."""
    scope = in_window(events, window_minutes, now)
    return _mean([max(0, e.result_count) for e in scope if e.succeeded])


def slow_queries(
    events,
    threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
    window_minutes=None,
    now=None,
) -> List[SearchEvent]:
    """Events strictly slower than ``threshold_ms``, in original order."""
    scope = in_window(events, window_minutes, now)
    return [e for e in scope if e.duration_ms > threshold_ms]


def zero_result_queries(events, window_minutes=None, now=None) -> List[SearchEvent]:
    """Successful searches that returned nothing."""
    scope = in_window(events, window_minutes, now)
    return [e for e in scope if e.succeeded and e.result_count == 0]


def _rank(queries: List[str], limit: int) -> List[QueryAggregate]:
    # Counter keeps first-insertion order and sorted() is stable, so equal
    # counts stay in first-occurrence order.
    counts = Counter(q for q in queries if q)
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [QueryAggregate(query=q, count=c) for q, c in ranked[:max(0, limit)]]


def popular_queries(
    events,
    limit: int = POPULAR_QUERIES_LIMIT,
    window_minutes=None,
    now=None,
) -> List[QueryAggregate]:
    """Most frequent non-empty normalized queries."""
    scope = in_window(events, window_minutes, now)
    return _rank([normalize_query(e.query) for e in scope], limit)


def zero_result_query_counts(
    events,
    limit: int = ZERO_RESULT_QUERIES_LIMIT,
    window_minutes=None,
    now=None,
) -> List[QueryAggregate]:
    """Zero-result searches grouped by normalized query (synonym/product gaps)."""
    zeroes = zero_result_queries(events, window_minutes, now)
    return _rank([normalize_query(e.query) for e in zeroes], limit)


def filter_usage_counts(events, window_minutes=None, now=None) -> Dict[str, int]:
    """Number of events in which each filter name was applied."""
    scope = in_window(events, window_minutes, now)
    usage: Counter = Counter()
    for e in scope:
        usage.update(set(e.filters_applied))
    return dict(usage)


def summarize(
    events,
    window_minutes: Optional[int] = DEFAULT_REALTIME_WINDOW_MINUTES,
    slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
    now: Optional[datetime] = None,
) -> RealtimeSummary:
    """Compute the real-time summary over the recent window."""
    scope = in_window(events, window_minutes, now)
    if not scope:
        return RealtimeSummary()

    slow = slow_queries(scope, slow_threshold_ms)
    slowest_first = sorted(slow, key=lambda e: -e.duration_ms)

    return RealtimeSummary(
        total_searches=len(scope),
        average_duration=average_duration(scope),
        success_rate=success_rate(scope),
        average_result_count=average_result_count(scope),
        popular_queries=popular_queries(scope, POPULAR_QUERIES_LIMIT),
        slow_queries=slowest_first[:SLOW_QUERIES_LIMIT],
        filters_usage=filter_usage_counts(scope),
    )
