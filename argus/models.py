"""Pydantic records exchanged between the stores and the scoring core.

These are deliberately decoupled from the ORM rows in :mod:`argus.db` so the
scoring, monitoring and benchmarking code can run against any store
implementation (SQL, in-memory fakes in tests).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

PolicyStatus = Literal["active", "pending", "lapsed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]


class PolicyRecord(BaseModel):
    """One insurance policy as stored by the CRM."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    policy_number: str = ""
    type: str
    provider: str
    premium: Decimal
    coverage_amount: Decimal
    status: PolicyStatus = "active"
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class UserProfile(BaseModel):
    """The slice of the CRM profile Argus needs: who and how old."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    date_of_birth: Optional[date] = None


class SnapshotRecord(BaseModel):
    """An immutable point-in-time performance score for one user.

    Attributes:
        id: Row id in ``performance_history``.
        user_id: Owner of the scored portfolio.
        created_at: When the snapshot was computed (UTC).
        performance_score: Composite 0–100 score.
        performance_rating: Rating label for the score.
        premium_score: Rounded premium sub-score (0–40).
        coverage_score: Rounded coverage sub-score (0–40).
        policy_score: Rounded policy-count sub-score (0–20).
        total_premium: Sum of monthly premiums across active policies.
        total_coverage: Sum of coverage amounts across active policies.
        total_policies: Number of active policies scored.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID = Field(default_factory=uuid.uuid4)
    user_id: UUID
    created_at: datetime
    performance_score: int = Field(ge=0, le=100)
    performance_rating: str
    premium_score: int = Field(ge=0, le=40)
    coverage_score: int = Field(ge=0, le=40)
    policy_score: int = Field(ge=0, le=20)
    total_premium: Decimal
    total_coverage: Decimal
    total_policies: int = Field(ge=0)


class NotificationRecord(BaseModel):
    """A notification row as written to the CRM ``notifications`` table."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid.uuid4)
    user_id: UUID
    type: str
    priority: Priority
    title: str
    message: str
    action_url: Optional[str] = None
    dedup_key: str
    policy_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
