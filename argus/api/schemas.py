"""Pydantic schemas for the Argus API responses.

Decoupled from the internal report models so the public surface can evolve
independently.  The CRM front end consumes camelCase JSON, so every response
model serialises with camelCase aliases while accepting snake_case on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------------


class DistributionBinResponse(CamelModel):
    range: str = Field(..., description="Inclusive score range label, e.g. '41-60'")
    min: int
    max: int
    count: int


class StatisticsResponse(CamelModel):
    average: Optional[int] = Field(None, description="Mean score, rounded")
    median: Optional[int] = None
    max: Optional[int] = None
    min: Optional[int] = None
    total_users: int = 0


class ComparisonResponse(CamelModel):
    vs_average: Optional[float] = Field(None, description="User score minus mean")
    vs_median: Optional[float] = Field(None, description="User score minus median")


class BenchmarkResponse(CamelModel):
    """Payload of ``GET /v1/benchmark``."""

    user_score: int
    percentile: int = Field(..., ge=0, le=100)
    distribution: list[DistributionBinResponse]
    statistics: StatisticsResponse
    comparison: ComparisonResponse
    cohort_scope: str
    ai_tips: str


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------


class SnapshotResponse(CamelModel):
    id: UUID
    created_at: datetime
    performance_score: int
    performance_rating: str
    premium_score: int
    coverage_score: int
    policy_score: int
    total_premium: float
    total_coverage: float
    total_policies: int


class HistoryResponse(CamelModel):
    user_id: UUID
    snapshots: list[SnapshotResponse]


class MarketBenchmarkResponse(CamelModel):
    avg_premium: float
    avg_coverage: float
    avg_policies: float


class ProviderStatsResponse(CamelModel):
    provider: str
    policy_count: int
    total_premium: float
    total_coverage: float
    avg_premium: float
    avg_coverage: float


class PortfolioAnalyticsResponse(CamelModel):
    """Payload of ``GET /v1/performance/current``."""

    user_id: UUID
    total_policies: int
    total_premium: float
    total_coverage: float
    avg_premium: float
    roi: int = Field(..., description="Total coverage / total premium, in percent")
    performance_score: int
    performance_rating: str
    premium_score: int
    coverage_score: int
    policy_score: int
    premium_vs_market: float = Field(..., description="Signed % vs the age benchmark")
    coverage_vs_market: float
    policies_vs_market: float
    age: int
    age_group: str
    benchmark: MarketBenchmarkResponse
    providers: list[ProviderStatsResponse]


class RunSummaryResponse(CamelModel):
    """Payload of ``POST /v1/performance/run``."""

    users_processed: int
    alerts_created: int
    users_scored: int
    users_skipped: int
    users_failed: int
    duration_seconds: float


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(CamelModel):
    status: str
    version: str
    database: str
    timestamp: datetime
