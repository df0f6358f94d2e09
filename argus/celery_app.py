"""Argus Celery application — task broker, beat scheduler, and configuration.

Initialises the Celery app with Redis as both broker and result backend,
registers the periodic beat schedule, and exposes the app instance for use by
workers (``celery -A argus.celery_app worker``).

Beat schedule overview:
    - run_performance_monitor : 03:00 UTC daily
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.schedules import crontab

from argus.config import settings

logger = logging.getLogger("argus.celery")

# ---------------------------------------------------------------------------
# App initialisation
# ---------------------------------------------------------------------------

app = Celery(
    "argus",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["argus.tasks"],
)

# ---------------------------------------------------------------------------
# Serialisation & transport settings
# ---------------------------------------------------------------------------

app.conf.update(
    # Serialisation
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behaviour
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # Keep results for 24 hours
    result_expires=86400,
    # Retry defaults
    task_max_retries=2,
    task_default_retry_delay=300,
)

# ---------------------------------------------------------------------------
# Beat schedule
# ---------------------------------------------------------------------------

app.conf.beat_schedule = {
    # Score every portfolio, snapshot it and raise alerts: 03:00 UTC daily
    "run-performance-monitor": {
        "task": "argus.tasks.run_performance_monitor",
        "schedule": crontab(hour=3, minute=0),
        "options": {"queue": "monitoring"},
    },
}

logger.info(
    "Celery app configured: broker=%s tasks=%d",
    settings.redis_url,
    len(app.conf.beat_schedule),
)
