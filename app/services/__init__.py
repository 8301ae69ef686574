"""Services module - Analytics storage, health probing and report assembly."""

from app.services.search_analytics import SearchAnalyticsStore, FailedQuery, SearchFunnel
from app.services.health_probe import ElasticsearchHealthProbe, HealthSnapshot, check_health
from app.services.report_assembler import AnalyticsReportAssembler, AnalyticsReport

__all__ = [
    "SearchAnalyticsStore",
    "FailedQuery",
    "SearchFunnel",
    "ElasticsearchHealthProbe",
    "HealthSnapshot",
    "check_health",
    "AnalyticsReportAssembler",
    "AnalyticsReport",
]
