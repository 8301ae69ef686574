"""Search backend health probing.

``check_health`` runs the connectivity and index-existence checks
concurrently and only asks for cluster health and index statistics when both
pass. A failing stats call degrades the snapshot (unknown status, zero
counters) instead of failing the whole check.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class ClusterStatus(str, Enum):
    """Search cluster health color."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ClusterStatus":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class IndexStats:
    document_count: int = 0
    size_bytes: int = 0


class HealthProbe(Protocol):
    """Read-only view of the search backend's health."""

    async def check_connectivity(self) -> bool: ...

    async def check_index_exists(self, name: str) -> bool: ...

    async def cluster_health(self) -> ClusterStatus: ...

    async def index_stats(self, name: str) -> IndexStats: ...

    async def version(self) -> Optional[str]: ...


@dataclass
class HealthSnapshot:
    """Point-in-time health of the search backend. Never cached."""
    index_name: str
    backend_reachable: bool = False
    index_present: bool = False
    cluster_status: ClusterStatus = ClusterStatus.UNKNOWN
    document_count: int = 0
    index_size_bytes: int = 0
    probe_duration_ms: int = 0
    version: str = "unknown"
    checked_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        healthy = (
            self.backend_reachable
            and self.index_present
            and self.cluster_status != ClusterStatus.RED
        )
        return "healthy" if healthy else "unhealthy"

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> Dict[str, Any]:
        checked_at = self.checked_at or datetime.now(timezone.utc)
        return {
            "status": self.status,
            "responseTime": self.probe_duration_ms,
            "elasticsearch": {
                "connected": self.backend_reachable,
                "clusterHealth": self.cluster_status.value,
                "version": self.version,
            },
            "index": {
                "name": self.index_name,
                "exists": self.index_present,
                "documentCount": self.document_count,
                "sizeInBytes": self.index_size_bytes,
            },
            "timestamp": checked_at.isoformat(),
        }


async def _safe_bool(check, label: str) -> bool:
    try:
        return bool(await check)
    except Exception as e:
        logger.warning(f"⚠️ Health check '{label}' failed: {e}")
        return False


async def check_health(
    probe: HealthProbe,
    index_name: str,
    fallback_version: str = "unknown",
) -> HealthSnapshot:
    """Probe the search backend and build a health snapshot."""
    start = time.monotonic()
    snapshot = HealthSnapshot(index_name=index_name, version=fallback_version)

    snapshot.backend_reachable, snapshot.index_present = await asyncio.gather(
        _safe_bool(probe.check_connectivity(), "connectivity"),
        _safe_bool(probe.check_index_exists(index_name), "index_exists"),
    )

    if snapshot.backend_reachable and snapshot.index_present:
        cluster, stats, version = await asyncio.gather(
            probe.cluster_health(),
            probe.index_stats(index_name),
            probe.version(),
            return_exceptions=True,
        )

        if isinstance(cluster, BaseException):
            logger.error(f"Error fetching cluster health: {cluster}")
        else:
            snapshot.cluster_status = cluster

        if isinstance(stats, BaseException):
            logger.error(f"Error fetching index stats for '{index_name}': {stats}")
        else:
            snapshot.document_count = stats.document_count
            snapshot.index_size_bytes = stats.size_bytes

        if isinstance(version, str) and version:
            snapshot.version = version

    snapshot.probe_duration_ms = int((time.monotonic() - start) * 1000)
    snapshot.checked_at = datetime.now(timezone.utc)
    return snapshot


class ElasticsearchHealthProbe:
    """HealthProbe over the Elasticsearch REST API."""

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        auth = (username, password) if username and password else None
        self.http_client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def check_connectivity(self) -> bool:
        """True when the cluster answers its health endpoint."""
        try:
            response = await self.http_client.get("/_cluster/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"❌ Elasticsearch connection failed: {e}")
            return False

    async def check_index_exists(self, name: str) -> bool:
        try:
            response = await self.http_client.head(f"/{name}")
        except httpx.HTTPError as e:
            logger.error(f"❌ Elasticsearch index check failed: {e}")
            return False
        return response.status_code == 200

    async def cluster_health(self) -> ClusterStatus:
        response = await self.http_client.get("/_cluster/health")
        response.raise_for_status()
        return ClusterStatus.parse(response.json().get("status"))

    async def index_stats(self, name: str) -> IndexStats:
        response = await self.http_client.get(f"/{name}/_stats/docs,store")
        response.raise_for_status()
        total = response.json().get("indices", {}).get(name, {}).get("total", {})
        return IndexStats(
            document_count=int(total.get("docs", {}).get("count", 0)),
            size_bytes=int(total.get("store", {}).get("size_in_bytes", 0)),
        )

    async def version(self) -> Optional[str]:
        response = await self.http_client.get("/")
        response.raise_for_status()
        return response.json().get("version", {}).get("number")

    async def close(self):
        await self.http_client.aclose()
