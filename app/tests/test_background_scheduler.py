"""Tests for the analytics retention scheduler."""
from unittest.mock import AsyncMock

import pytest

from app.services.background_scheduler import PRUNE_JOB_ID, BackgroundScheduler


def test_initialize_registers_prune_job():
    scheduler = BackgroundScheduler(AsyncMock(), retention_days=90)

    aps = scheduler.initialize()

    job = aps.get_job(PRUNE_JOB_ID)
    assert job is not None
    assert scheduler.initialize() is aps


@pytest.mark.asyncio
async def test_prune_task_uses_retention():
    store = AsyncMock()
    scheduler = BackgroundScheduler(store, retention_days=30)

    await scheduler._prune_task()

    store.prune.assert_awaited_once_with(30)


@pytest.mark.asyncio
async def test_prune_task_logs_failures():
    store = AsyncMock()
    store.prune.side_effect = RuntimeError("database is down")
    scheduler = BackgroundScheduler(store, retention_days=30)

    await scheduler._prune_task()

    store.prune.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_and_shutdown():
    scheduler = BackgroundScheduler(AsyncMock(), retention_days=90)

    scheduler.start()
    assert scheduler._scheduler.running

    scheduler.shutdown()
