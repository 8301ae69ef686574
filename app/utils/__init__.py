"""Utils module - Search metrics window, aggregation and fault tolerance."""

from app.utils.search_metrics import MetricCollector, SearchEvent
from app.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen

__all__ = [
    "MetricCollector",
    "SearchEvent",
    "CircuitBreaker",
    "CircuitBreakerOpen",
]
