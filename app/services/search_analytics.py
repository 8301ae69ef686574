"""
Durable search analytics store.

Historical (beyond the in-memory window) statistics: top queries, failed
queries, the search conversion funnel and click tracking. Backed by the
``search_logs`` / ``search_click_*`` tables through SQLAlchemy async sessions.
Each public call opens its own session so several calls can run concurrently.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import SearchClickEvent, SearchClickMetrics, SearchLog, utcnow
from app.utils.aggregator import QueryAggregate, normalize_query
from app.utils.search_metrics import SearchEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailedQuery:
    """A search that failed, with its error detail."""
    query: str
    error_detail: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "errorDetail": self.error_detail,
            "occurredAt": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class SearchFunnel:
    """Conversion sequence searches -> clicks -> add-to-cart -> purchases."""
    searches: int = 0
    clicks: int = 0
    add_to_cart: int = 0
    purchases: int = 0

    @property
    def click_through_rate(self) -> float:
        return _percent(self.clicks, self.searches)

    @property
    def conversion_rate(self) -> float:
        return _percent(self.purchases, self.clicks)

    def is_monotonic(self) -> bool:
        return self.searches >= self.clicks >= self.add_to_cart >= self.purchases

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searches": self.searches,
            "clicks": self.clicks,
            "addToCart": self.add_to_cart,
            "purchases": self.purchases,
            "clickThroughRate": self.click_through_rate,
            "conversionRate": self.conversion_rate,
        }


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def _to_db_time(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _since(days: int) -> datetime:
    return utcnow() - timedelta(days=days)


def _insert_for(session: AsyncSession):
    """Dialect insert construct that supports ON CONFLICT upserts."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Click metrics upsert is not supported on '{dialect}'")


class SearchAnalyticsStore:
    """SQL-backed historical analytics reader and event writer."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def top_queries(self, limit: int = 20, days: int = 30) -> List[QueryAggregate]:
        """Most frequent normalized queries over the last ``days`` days."""
        count = func.count(SearchLog.id).label("count")
        stmt = (
            select(SearchLog.normalized_query, count, func.min(SearchLog.id).label("first_id"))
            .where(SearchLog.occurred_at >= _since(days), SearchLog.normalized_query != "")
            .group_by(SearchLog.normalized_query)
            .order_by(count.desc(), func.min(SearchLog.id))
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [QueryAggregate(query=row.normalized_query, count=row.count) for row in result]

    async def failed_queries(self, limit: int = 20) -> List[FailedQuery]:
        """Most recent failed searches."""
        stmt = (
            select(SearchLog)
            .where(SearchLog.succeeded.is_(False))
            .order_by(SearchLog.occurred_at.desc(), SearchLog.id.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                FailedQuery(
                    query=row.query,
                    error_detail=row.error_detail or "unknown error",
                    occurred_at=_from_db_time(row.occurred_at),
                )
                for row in result.scalars()
            ]

    async def search_funnel(self, days: int = 30) -> SearchFunnel:
        """Searches, clicks, add-to-cart and purchase counts over ``days`` days."""
        since = _since(days)
        async with self._session_factory() as session:
            searches = await session.scalar(
                select(func.count(SearchLog.id)).where(SearchLog.occurred_at >= since)
            )
            clicks = await session.scalar(
                select(func.count(SearchClickEvent.id)).where(SearchClickEvent.clicked_at >= since)
            )
            totals = (await session.execute(
                select(
                    func.coalesce(func.sum(SearchClickMetrics.add_to_cart), 0),
                    func.coalesce(func.sum(SearchClickMetrics.conversions), 0),
                ).where(SearchClickMetrics.updated_at >= since)
            )).one()

        funnel = SearchFunnel(
            searches=searches or 0,
            clicks=clicks or 0,
            add_to_cart=int(totals[0]),
            purchases=int(totals[1]),
        )
        if not funnel.is_monotonic():
            logger.warning(f"⚠️ Search funnel is not monotonic over {days} days: {funnel}")
        return funnel

    async def top_clicked_queries(self, limit: int = 20, days: int = 30) -> List[Dict[str, Any]]:
        """Queries ranked by total result clicks."""
        total_clicks = func.sum(SearchClickMetrics.clicks).label("total_clicks")
        stmt = (
            select(
                SearchClickMetrics.query,
                total_clicks,
                func.sum(SearchClickMetrics.conversions).label("total_conversions"),
                func.sum(SearchClickMetrics.revenue).label("total_revenue"),
                func.count(SearchClickMetrics.product_id).label("unique_products"),
            )
            .where(SearchClickMetrics.updated_at >= _since(days))
            .group_by(SearchClickMetrics.query)
            .order_by(total_clicks.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                {
                    "query": row.query,
                    "uniqueProductsClicked": row.unique_products,
                    "totalClicks": row.total_clicks or 0,
                    "totalConversions": row.total_conversions or 0,
                    "conversionRate": _percent(row.total_conversions or 0, row.total_clicks or 0),
                    "totalRevenue": float(row.total_revenue or 0),
                }
                for row in result
            ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def log_search(self, event: SearchEvent) -> None:
        """Persist one completed search."""
        entry = SearchLog(
            query=event.query,
            normalized_query=normalize_query(event.query),
            duration_ms=event.duration_ms,
            result_count=event.result_count,
            filters=",".join(sorted(event.filters_applied)) or None,
            succeeded=event.succeeded,
            error_detail=event.error_detail,
            occurred_at=_to_db_time(event.occurred_at),
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(entry)

    async def track_click(
        self,
        query: str,
        product_id: str,
        position: int,
        result_count: int,
        filters: Optional[List[str]] = None,
        category: Optional[str] = None,
        price: Optional[float] = None,
        score: Optional[float] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        clicked_at: Optional[datetime] = None,
    ) -> None:
        """Record a result click and update the per-query/product counters."""
        normalized = normalize_query(query)
        clicked_at = _to_db_time(clicked_at) if clicked_at else utcnow()

        async with self._session_factory() as session:
            async with session.begin():
                session.add(SearchClickEvent(
                    query=normalized,
                    product_id=product_id,
                    position=position,
                    result_count=result_count,
                    filters=",".join(filters) if filters else None,
                    category=category,
                    price=price,
                    score=score,
                    user_id=user_id,
                    session_id=session_id,
                    clicked_at=clicked_at,
                ))

                upsert = _insert_for(session)(SearchClickMetrics).values(
                    query=normalized,
                    product_id=product_id,
                    clicks=1,
                    add_to_cart=0,
                    conversions=0,
                    revenue=0.0,
                    avg_position=float(position),
                    result_count=result_count,
                    last_clicked=clicked_at,
                    updated_at=utcnow(),
                )
                await session.execute(upsert.on_conflict_do_update(
                    index_elements=[SearchClickMetrics.query, SearchClickMetrics.product_id],
                    set_={
                        # Running mean of the clicked position
                        "avg_position": (
                            SearchClickMetrics.avg_position * SearchClickMetrics.clicks + position
                        ) / (SearchClickMetrics.clicks + 1),
                        "clicks": SearchClickMetrics.clicks + 1,
                        "result_count": upsert.excluded.result_count,
                        "last_clicked": upsert.excluded.last_clicked,
                        "updated_at": upsert.excluded.updated_at,
                    },
                ))

    async def track_add_to_cart(self, query: str, product_id: str) -> bool:
        """Count an add-to-cart attributed to a search. False if never clicked."""
        return await self._increment(
            query, product_id, add_to_cart=SearchClickMetrics.add_to_cart + 1
        )

    async def track_conversion(self, query: str, product_id: str, revenue: float = 0.0) -> bool:
        """Count a purchase attributed to a search. False if never clicked."""
        return await self._increment(
            query,
            product_id,
            conversions=SearchClickMetrics.conversions + 1,
            revenue=SearchClickMetrics.revenue + (revenue or 0.0),
        )

    async def _increment(self, query: str, product_id: str, **values) -> bool:
        stmt = (
            update(SearchClickMetrics)
            .where(
                SearchClickMetrics.query == normalize_query(query),
                SearchClickMetrics.product_id == product_id,
            )
            .values(updated_at=utcnow(), **values)
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount > 0

    async def prune(self, retention_days: int) -> Dict[str, int]:
        """Delete search logs and click events older than ``retention_days``."""
        cutoff = _since(retention_days)
        async with self._session_factory() as session:
            async with session.begin():
                logs = await session.execute(delete(SearchLog).where(SearchLog.occurred_at < cutoff))
                clicks = await session.execute(
                    delete(SearchClickEvent).where(SearchClickEvent.clicked_at < cutoff)
                )
        deleted = {"search_logs": logs.rowcount, "click_events": clicks.rowcount}
        logger.info(f"🧹 Pruned analytics older than {retention_days} days: {deleted}")
        return deleted
