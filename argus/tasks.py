"""Argus Celery Tasks — the scheduled performance-monitoring run.

The task wraps the async :class:`BatchOrchestrator` via the shared
``_run_async`` helper and returns the run summary as a JSON-safe dict.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

from celery import Task

from argus.celery_app import app

logger = logging.getLogger("argus.tasks")

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Execute an async coroutine from a synchronous Celery task.

    Celery worker threads have no running event loop, so a fresh one is
    created for each call.
    """
    return asyncio.run(coro)


async def run_performance_monitor_async():
    """Run the batch against the configured database.

    The engine's connection pool is bound to the event loop that created its
    connections, so it is disposed before the loop closes.
    """
    from argus.batch import BatchOrchestrator
    from argus.db import async_session, engine

    try:
        return await BatchOrchestrator.from_session_factory(async_session).run()
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Task: run_performance_monitor
# ---------------------------------------------------------------------------


@app.task(
    name="argus.tasks.run_performance_monitor",
    bind=True,
    max_retries=2,
    default_retry_delay=300,
    queue="monitoring",
)
def run_performance_monitor(self: Task) -> dict:
    """Score all users with non-cancelled policies and raise notifications.

    Per-user failures are absorbed by the orchestrator; only a failure to
    enumerate users (e.g. the database is down) fails the task, which is then
    retried.

    Returns:
        Dict with ``users_processed``, ``alerts_created``, ``users_scored``,
        ``users_skipped``, ``users_failed`` and ``duration_seconds``.
    """
    logger.info("Task: run_performance_monitor started")
    try:
        summary = _run_async(run_performance_monitor_async())
    except Exception as exc:
        logger.error("run_performance_monitor failed: %s", exc)
        raise self.retry(exc=exc)
    return summary.model_dump()
