"""Analytics report assembly.

Combines the historical statistics from the durable store with the real-time
summary of the in-memory window. Every section is computed concurrently and
independently: a failing or slow section is replaced by a failure marker
while the others still populate.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from app.services.search_analytics import FailedQuery, SearchFunnel
from app.utils import aggregator
from app.utils.aggregator import QueryAggregate
from app.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from app.utils.search_metrics import MetricCollector

logger = logging.getLogger(__name__)


class PersistentAnalyticsReader(Protocol):
    """Historical query and funnel statistics beyond the in-memory window."""

    async def top_queries(self, limit: int, days: int) -> List[QueryAggregate]: ...

    async def failed_queries(self, limit: int) -> List[FailedQuery]: ...

    async def search_funnel(self, days: int) -> SearchFunnel: ...


@dataclass(frozen=True)
class SectionFailure:
    """Marker for a report section that could not be computed."""
    reason: str  # error | timeout | unavailable

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "failed", "reason": self.reason}


@dataclass
class SectionResult:
    """Either a computed value or a SectionFailure."""
    value: Any = None
    failure: Optional[SectionFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def to_json(self, render: Callable[[Any], Any]) -> Any:
        if self.failure is not None:
            return self.failure.to_dict()
        return render(self.value)


@dataclass
class AnalyticsReport:
    days: int
    funnel: SectionResult
    top_queries: SectionResult
    failed_queries: SectionResult
    zero_result_queries: SectionResult
    realtime: SectionResult
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sections(self) -> Dict[str, SectionResult]:
        return {
            "funnel": self.funnel,
            "topQueries": self.top_queries,
            "failedQueries": self.failed_queries,
            "zeroResultQueries": self.zero_result_queries,
            "realtime": self.realtime,
        }

    @property
    def failed_sections(self) -> List[str]:
        return [name for name, section in self.sections.items() if not section.ok]

    def to_dict(self) -> Dict[str, Any]:
        def as_list(items):
            return [item.to_dict() for item in items]

        return {
            "success": True,
            "period": {"days": self.days},
            "funnel": self.funnel.to_json(lambda f: f.to_dict()),
            "topQueries": self.top_queries.to_json(as_list),
            "failedQueries": self.failed_queries.to_json(as_list),
            "zeroResultQueries": self.zero_result_queries.to_json(as_list),
            "realtime": self.realtime.to_json(lambda r: r.to_dict()),
            "generatedAt": self.generated_at.isoformat(),
        }


class AnalyticsReportAssembler:
    """Fan out to the store and the aggregator, join, and merge."""

    def __init__(
        self,
        collector: MetricCollector,
        reader: PersistentAnalyticsReader,
        realtime_window_minutes: int = aggregator.DEFAULT_REALTIME_WINDOW_MINUTES,
        slow_threshold_ms: int = aggregator.DEFAULT_SLOW_THRESHOLD_MS,
        timeout_seconds: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.collector = collector
        self.reader = reader
        self.realtime_window_minutes = realtime_window_minutes
        self.slow_threshold_ms = slow_threshold_ms
        self.timeout_seconds = timeout_seconds
        self.breaker = breaker or CircuitBreaker("analytics_store")

    async def _upstream(self, func: Callable[..., Awaitable[Any]], *args) -> Any:
        return await self.breaker.call_async(func, *args)

    async def assemble(self, days: int = 30, limit: int = 20) -> AnalyticsReport:
        """Build the analytics report.

        ``days`` scopes the historical sections and the zero-result grouping;
        the real-time section always uses the fixed recent window.
        """
        snapshot = self.collector.snapshot()

        calls: Dict[str, Awaitable[Any]] = {
            "top_queries": self._upstream(self.reader.top_queries, limit, days),
            "failed_queries": self._upstream(self.reader.failed_queries, limit),
            "funnel": self._upstream(self.reader.search_funnel, days),
            "realtime": asyncio.to_thread(
                aggregator.summarize,
                snapshot,
                self.realtime_window_minutes,
                self.slow_threshold_ms,
            ),
            "zero_result_queries": asyncio.to_thread(
                aggregator.zero_result_query_counts,
                snapshot,
                aggregator.ZERO_RESULT_QUERIES_LIMIT,
                days * 24 * 60,
            ),
        }
        tasks = {name: asyncio.ensure_future(call) for name, call in calls.items()}

        done, pending = await asyncio.wait(tasks.values(), timeout=self.timeout_seconds)
        for task in pending:
            task.cancel()

        results: Dict[str, SectionResult] = {}
        for name, task in tasks.items():
            if task in pending:
                logger.warning(f"⏳ Analytics section '{name}' timed out after {self.timeout_seconds}s")
                results[name] = SectionResult(failure=SectionFailure("timeout"))
                continue

            error = task.exception()
            if error is None:
                results[name] = SectionResult(value=task.result())
            elif isinstance(error, CircuitBreakerOpen):
                logger.warning(f"🔌 Analytics section '{name}' skipped: {error}")
                results[name] = SectionResult(failure=SectionFailure("unavailable"))
            else:
                logger.error(f"❌ Analytics section '{name}' failed: {error}", exc_info=error)
                results[name] = SectionResult(failure=SectionFailure("error"))

        return AnalyticsReport(
            days=days,
            funnel=results["funnel"],
            top_queries=results["top_queries"],
            failed_queries=results["failed_queries"],
            zero_result_queries=results["zero_result_queries"],
            realtime=results["realtime"],
        )
