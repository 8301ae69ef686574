"""Database module - ORM models for the durable analytics log."""

from app.db.models import (
    SearchLog,
    SearchClickEvent,
    SearchClickMetrics,
)

__all__ = [
    "SearchLog",
    "SearchClickEvent",
    "SearchClickMetrics",
]
