"""SQLAlchemy ORM models for the durable search analytics log."""
from sqlalchemy import Column, String, Integer, DateTime, Float, Boolean, Text, Index, UniqueConstraint
from datetime import datetime, timezone
from app.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SearchLog(Base):
    """One completed search operation (successful or failed)."""
    __tablename__ = "search_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(500), nullable=False, default="")
    normalized_query = Column(String(500), nullable=False, default="", index=True)
    duration_ms = Column(Integer, nullable=False, default=0)
    result_count = Column(Integer, nullable=False, default=0)
    filters = Column(Text, nullable=True)  # comma-joined filter names
    succeeded = Column(Boolean, nullable=False, default=True)
    error_detail = Column(Text, nullable=True)
    occurred_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("idx_search_logs_succeeded_occurred", "succeeded", "occurred_at"),
    )


class SearchClickEvent(Base):
    """A click on a search result."""
    __tablename__ = "search_click_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(500), nullable=False, index=True)
    product_id = Column(String(64), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    result_count = Column(Integer, nullable=False, default=0)
    filters = Column(Text, nullable=True)
    category = Column(String(255), nullable=True)
    price = Column(Float, nullable=True)
    score = Column(Float, nullable=True)
    user_id = Column(String(64), nullable=True)
    session_id = Column(String(64), nullable=True)
    clicked_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class SearchClickMetrics(Base):
    """Aggregated click/cart/purchase counters per (query, product)."""
    __tablename__ = "search_click_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(500), nullable=False)
    product_id = Column(String(64), nullable=False)
    clicks = Column(Integer, nullable=False, default=0)
    add_to_cart = Column(Integer, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    revenue = Column(Float, nullable=False, default=0.0)
    avg_position = Column(Float, nullable=False, default=0.0)
    result_count = Column(Integer, nullable=False, default=0)
    last_clicked = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint("query", "product_id", name="uq_click_metrics_query_product"),
        Index("idx_click_metrics_query", "query"),
    )
