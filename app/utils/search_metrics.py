"""
In-memory search metrics collector for monitoring search performance.

Keeps a bounded FIFO window of recent search events for real-time dashboards.
The window is volatile: it is lost on restart and only ever holds the most
recent ``capacity`` events.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Deque, FrozenSet, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
UNKNOWN_ERROR = "unknown error"


@dataclass(frozen=True)
class SearchEvent:
    """One completed search operation with timing, outcome and filter metadata.

    Values are normalized on construction so the event is always consistent:
    negative counters are clamped to 0, ``error_detail`` is present only for
    failed searches and ``filters_applied`` is a frozenset.
    """

    query: str
    duration_ms: int
    result_count: int
    filters_applied: FrozenSet[str] = field(default_factory=frozenset)
    succeeded: bool = True
    error_detail: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "query", self.query or "")
        object.__setattr__(self, "duration_ms", max(0, int(self.duration_ms or 0)))
        object.__setattr__(self, "result_count", max(0, int(self.result_count or 0)))
        object.__setattr__(self, "filters_applied", frozenset(self.filters_applied or ()))

        if self.succeeded:
            object.__setattr__(self, "error_detail", None)
        elif not self.error_detail:
            object.__setattr__(self, "error_detail", UNKNOWN_ERROR)

        if self.occurred_at.tzinfo is None:
            object.__setattr__(self, "occurred_at", self.occurred_at.replace(tzinfo=timezone.utc))

    @classmethod
    def record(
        cls,
        query: str,
        duration_ms: int,
        result_count: int = 0,
        filters: Iterable[str] = (),
        error: Optional[str] = None,
    ) -> "SearchEvent":
        """Build an event stamped with the current time.

        A search is considered failed when ``error`` is given.
        """
        return cls(
            query=query,
            duration_ms=duration_ms,
            result_count=result_count,
            filters_applied=frozenset(filters),
            succeeded=error is None,
            error_detail=error,
        )


class MetricCollector:
    """Bounded, thread-safe buffer of recent search events.

    ``add`` is fire-and-forget: it never blocks on I/O and never raises.
    When the window is full the oldest event is evicted with each insertion.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._events: Deque[SearchEvent] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, event: SearchEvent) -> None:
        """Append an event, evicting the oldest one at capacity."""
        with self._lock:
            self._events.append(event)

    def snapshot(self) -> Tuple[SearchEvent, ...]:
        """Return an immutable point-in-time copy, oldest first."""
        with self._lock:
            return tuple(self._events)

    def reset(self) -> None:
        """Drop every retained event (administrative/testing only)."""
        with self._lock:
            dropped = len(self._events)
            self._events.clear()
        logger.info(f"🧹 Search metrics window reset ({dropped} events dropped)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
