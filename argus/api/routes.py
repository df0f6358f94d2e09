"""Argus FastAPI application — benchmark queries and performance history.

Endpoints
---------
GET   /v1/benchmark              — cohort benchmark for the calling user
GET   /v1/performance/current    — live portfolio analytics for the calling user
GET   /v1/performance/history    — the calling user's most recent snapshots
POST  /v1/performance/run        — trigger a batch scoring run
GET   /v1/health                 — system health check

Service authentication is via the ``X-API-Key`` header.  The CRM gateway
forwards the authenticated user's id in ``X-User-Id``; requests without it are
rejected with 401.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from argus import __version__
from argus.analytics import PortfolioAnalyticsService
from argus.api.schemas import (
    BenchmarkResponse,
    HealthResponse,
    HistoryResponse,
    PortfolioAnalyticsResponse,
    RunSummaryResponse,
    SnapshotResponse,
)
from argus.batch import BatchOrchestrator
from argus.benchmarking.cohort import CohortBenchmarkingEngine
from argus.benchmarking.tips import TipsGenerator
from argus.config import settings
from argus.db import async_session, engine
from argus.errors import EmptyPortfolioError
from argus.stores import (
    NotificationStore,
    PolicyReader,
    SnapshotStore,
    SqlNotificationStore,
    SqlPolicyReader,
    SqlSnapshotStore,
)

logger = logging.getLogger("argus.api")


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

_tips_generator: Optional[TipsGenerator] = None


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """On shutdown, close the tips client and dispose the connection pool."""
    global _tips_generator

    logger.info("Argus API starting up (version=%s)", __version__)
    yield
    logger.info("Argus API shutting down")
    if _tips_generator is not None:
        await _tips_generator.close()
        _tips_generator = None
    await engine.dispose()
    logger.info("Database pool disposed")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Argus Portfolio Benchmark API",
    description=(
        "Portfolio performance scores, score history and age-cohort "
        "benchmarking for CRM clients."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Middleware: request logging
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every inbound request with timing."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s → %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def require_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> str:
    """Validate the ``X-API-Key`` header.

    Raises:
        HTTPException: 403 if the key is invalid.
    """
    if x_api_key != settings.argus_api_key:
        logger.warning("Invalid API key attempt: %s...", x_api_key[:6])
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key.",
        )
    return x_api_key


async def current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> UUID:
    """The authenticated user forwarded by the gateway.

    Raises:
        HTTPException: 401 if the header is missing or not a UUID.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized.",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: malformed user id.",
        ) from None


def get_policy_reader() -> PolicyReader:
    return SqlPolicyReader(async_session)


def get_snapshot_store() -> SnapshotStore:
    return SqlSnapshotStore(async_session)


def get_notification_store() -> NotificationStore:
    return SqlNotificationStore(async_session)


def get_tips_generator() -> TipsGenerator:
    """Return the application-level TipsGenerator, creating it on first use."""
    global _tips_generator
    if _tips_generator is None:
        _tips_generator = TipsGenerator()
    return _tips_generator


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get(
    "/v1/benchmark",
    response_model=BenchmarkResponse,
    summary="Age-cohort benchmark for the calling user",
    tags=["Benchmark"],
)
async def get_benchmark(
    user_id: UUID = Depends(current_user_id),
    reader: PolicyReader = Depends(get_policy_reader),
    snapshots: SnapshotStore = Depends(get_snapshot_store),
    tips: TipsGenerator = Depends(get_tips_generator),
    _key: str = Depends(require_api_key),
) -> BenchmarkResponse:
    """Percentile, histogram and summary statistics of the user's latest score
    against users within five years of their age.
    """
    cohort_engine = CohortBenchmarkingEngine(reader, snapshots, tips)
    report = await cohort_engine.benchmark_user(user_id)
    return BenchmarkResponse.model_validate(report.model_dump())


@app.get(
    "/v1/performance/current",
    response_model=PortfolioAnalyticsResponse,
    summary="Live portfolio analytics for the calling user",
    tags=["Performance"],
)
async def get_current_performance(
    user_id: UUID = Depends(current_user_id),
    reader: PolicyReader = Depends(get_policy_reader),
    _key: str = Depends(require_api_key),
) -> PortfolioAnalyticsResponse:
    """KPIs, benchmark comparison and provider breakdown computed from the
    user's policies as they stand now.  Nothing is persisted.
    """
    try:
        analytics = await PortfolioAnalyticsService(reader).current(user_id)
    except EmptyPortfolioError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active policies found.",
        ) from None
    return PortfolioAnalyticsResponse.model_validate(analytics.model_dump())


@app.get(
    "/v1/performance/history",
    response_model=HistoryResponse,
    summary="Most recent performance snapshots for the calling user",
    tags=["Performance"],
)
async def get_history(
    limit: int = Query(12, ge=1, le=365, description="Number of snapshots to return"),
    user_id: UUID = Depends(current_user_id),
    snapshots: SnapshotStore = Depends(get_snapshot_store),
    _key: str = Depends(require_api_key),
) -> HistoryResponse:
    rows = await snapshots.recent(user_id, limit)
    return HistoryResponse(
        user_id=user_id,
        snapshots=[SnapshotResponse.model_validate(r.model_dump()) for r in rows],
    )


@app.post(
    "/v1/performance/run",
    response_model=RunSummaryResponse,
    summary="Run the performance-monitoring batch now",
    tags=["Performance"],
)
async def run_batch(
    reader: PolicyReader = Depends(get_policy_reader),
    snapshots: SnapshotStore = Depends(get_snapshot_store),
    notifications: NotificationStore = Depends(get_notification_store),
    _key: str = Depends(require_api_key),
) -> RunSummaryResponse:
    """Score every eligible user synchronously and return the run summary."""
    orchestrator = BatchOrchestrator(reader, snapshots, notifications)
    summary = await orchestrator.run()
    return RunSummaryResponse.model_validate(summary.model_dump())


@app.get(
    "/v1/health",
    response_model=HealthResponse,
    summary="System health check",
    tags=["System"],
)
async def health() -> HealthResponse:
    """Liveness plus a database round-trip; no auth required."""
    db_status = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Health check DB error: %s", exc)
        db_status = "unavailable"

    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        version=__version__,
        database=db_status,
        timestamp=datetime.now(timezone.utc),
    )
