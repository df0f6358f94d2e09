"""Argus Trend Detector — score and rating transitions between snapshots.

Compares a freshly computed :class:`ScoreResult` with the user's most recent
prior snapshot and surfaces the changes worth telling the user about:

- a score drop of 10+ points
- a rating downgrade
- a score improvement of 15+ points
- a premium gap (paying more than 20% above the benchmark)
- a coverage gap (covered more than 30% below the benchmark)

The three score-delta rules form a single first-match chain, so at most one of
drop / downgrade / improvement fires per run.  The two gap rules are checked
on every run, whether or not a prior snapshot exists.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from argus.models import Priority, SnapshotRecord
from argus.scoring.calculator import ScoreResult, round_half_up
from argus.scoring.rating import is_known_rating, rating_for, rating_rank

logger = logging.getLogger("argus.monitoring.trend_detector")

TriggerType = Literal[
    "score_drop",
    "rating_downgrade",
    "score_improvement",
    "high_premium_gap",
    "low_coverage_gap",
    "policy_expiring",
    "high_premium",
]

SCORE_DROP_THRESHOLD = -10
SCORE_IMPROVEMENT_THRESHOLD = 15
PREMIUM_GAP_THRESHOLD = 20.0
COVERAGE_GAP_THRESHOLD = -30.0

ANALYTICS_URL = "/client/analytics"
RECOMMENDATIONS_URL = "/client/recommendations"


class TriggerEvent(BaseModel):
    """A detected condition that may become a user notification.

    Attributes:
        user_id: User the event concerns.
        type: Trigger category, also the notification type.
        priority: low / medium / high / urgent.
        title: Short headline for the notification.
        message: User-facing text with the numbers that triggered it.
        action_url: Client route the notification links to.
        correlation_id: Optional id narrowing dedup (e.g. a policy id).
        policy_id: Policy the event concerns, for per-policy triggers.
        metadata: The numeric values behind the message.
    """

    user_id: UUID
    type: TriggerType
    priority: Priority
    title: str
    message: str
    action_url: str
    correlation_id: Optional[UUID] = None
    policy_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def dedup_key(self) -> str:
        if self.correlation_id is None:
            return self.type
        return f"{self.type}:{self.correlation_id}"


class TrendDetector:
    """Turns a score computation plus prior snapshot into trigger events.

    Stateless; safe to share across concurrent per-user runs.

    Typical usage::

        detector = TrendDetector()
        events = detector.detect(user_id, result, prior_snapshot)
    """

    def detect(
        self,
        user_id: UUID,
        current: ScoreResult,
        prior: Optional[SnapshotRecord],
    ) -> list[TriggerEvent]:
        events: list[TriggerEvent] = []

        if prior is not None:
            trend_event = self._detect_trend(user_id, current, prior)
            if trend_event is not None:
                events.append(trend_event)

        events.extend(self._detect_gaps(user_id, current))

        if events:
            logger.debug(
                "User %s: %d trigger(s): %s",
                user_id,
                len(events),
                ", ".join(e.type for e in events),
            )
        return events

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _detect_trend(
        self, user_id: UUID, current: ScoreResult, prior: SnapshotRecord
    ) -> Optional[TriggerEvent]:
        previous_score = prior.performance_score
        delta = current.score - previous_score

        if delta <= SCORE_DROP_THRESHOLD:
            return TriggerEvent(
                user_id=user_id,
                type="score_drop",
                priority="high",
                title="Significant drop in your performance score",
                message=(
                    f"Your score dropped from {previous_score} to {current.score} "
                    f"({abs(delta)} points). Review your insurance portfolio and "
                    f"look for opportunities to improve."
                ),
                action_url=ANALYTICS_URL,
                metadata={
                    "previous_score": previous_score,
                    "current_score": current.score,
                    "score_delta": delta,
                },
            )

        if self._rank_of(prior) < rating_rank(current.rating):
            return TriggerEvent(
                user_id=user_id,
                type="rating_downgrade",
                priority="medium",
                title="Your performance rating went down",
                message=(
                    f'Your rating changed from "{prior.performance_rating}" to '
                    f'"{current.rating}". See the improvement suggestions on your '
                    f"analytics dashboard."
                ),
                action_url=ANALYTICS_URL,
                metadata={
                    "previous_rating": prior.performance_rating,
                    "current_rating": current.rating,
                    "previous_score": previous_score,
                    "current_score": current.score,
                },
            )

        if delta >= SCORE_IMPROVEMENT_THRESHOLD:
            return TriggerEvent(
                user_id=user_id,
                type="score_improvement",
                priority="low",
                title="Significant improvement in your performance score!",
                message=(
                    f"Well done! Your score rose from {previous_score} to "
                    f"{current.score} (+{delta} points). Keep it up!"
                ),
                action_url=ANALYTICS_URL,
                metadata={
                    "previous_score": previous_score,
                    "current_score": current.score,
                    "score_delta": delta,
                },
            )

        return None

    def _detect_gaps(self, user_id: UUID, current: ScoreResult) -> list[TriggerEvent]:
        events: list[TriggerEvent] = []

        if current.premium_diff_pct > PREMIUM_GAP_THRESHOLD:
            pct = round_half_up(current.premium_diff_pct)
            events.append(
                TriggerEvent(
                    user_id=user_id,
                    type="high_premium_gap",
                    priority="high",
                    title="Significant savings opportunity detected",
                    message=(
                        f"Your premiums are {pct}% above the market average. "
                        f"Check the optimisation recommendations."
                    ),
                    action_url=RECOMMENDATIONS_URL,
                    metadata={"premium_diff_pct": pct},
                )
            )

        if current.coverage_diff_pct < COVERAGE_GAP_THRESHOLD:
            signed_pct = round_half_up(current.coverage_diff_pct)
            pct = abs(signed_pct)
            events.append(
                TriggerEvent(
                    user_id=user_id,
                    type="low_coverage_gap",
                    priority="high",
                    title="Significant coverage gap",
                    message=(
                        f"Your coverage is {pct}% below the recommended level. "
                        f"Consider increasing it to stay properly protected."
                    ),
                    action_url=RECOMMENDATIONS_URL,
                    metadata={"coverage_diff_pct": signed_pct},
                )
            )

        return events

    @staticmethod
    def _rank_of(prior: SnapshotRecord) -> int:
        """Rank of the prior rating, re-derived from its score for unknown labels."""
        if is_known_rating(prior.performance_rating):
            return rating_rank(prior.performance_rating)
        logger.debug(
            "Unknown prior rating %r; deriving rank from score %d",
            prior.performance_rating,
            prior.performance_score,
        )
        return rating_rank(rating_for(prior.performance_score))
