#!/usr/bin/env python3
"""Prune search logs and click events past the retention period."""
import argparse
import asyncio
import logging

from app.core.config import SEARCH_LOG_RETENTION_DAYS
from app.core.database import async_session, close_db
from app.services.search_analytics import SearchAnalyticsStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(retention_days: int):
    """Main entry point."""
    logger.info(f"🧹 Pruning search analytics older than {retention_days} days...")
    store = SearchAnalyticsStore(async_session)
    try:
        deleted = await store.prune(retention_days)
    finally:
        await close_db()
    logger.info(
        f"✅ Prune complete: {deleted['search_logs']} search logs, "
        f"{deleted['click_events']} click events deleted"
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--retention-days",
        type=int,
        default=SEARCH_LOG_RETENTION_DAYS,
        help="Keep rows newer than this many days",
    )
    args = parser.parse_args()
    asyncio.run(main(args.retention_days))
