"""Rating classifier — maps a composite score to an ordered qualitative label."""

from __future__ import annotations

EXCELLENT = "excellent"
VERY_GOOD = "very good"
GOOD = "good"
SATISFACTORY = "satisfactory"
NEEDS_IMPROVEMENT = "needs improvement"

# Best first. Index in this tuple is the rating's rank; a larger rank is worse.
RATING_ORDER: tuple[str, ...] = (
    EXCELLENT,
    VERY_GOOD,
    GOOD,
    SATISFACTORY,
    NEEDS_IMPROVEMENT,
)

_RANKS = {label: rank for rank, label in enumerate(RATING_ORDER)}


def rating_for(score: int) -> str:
    """Classify a composite score. Thresholds are evaluated top-down."""
    if score >= 85:
        return EXCELLENT
    if score >= 70:
        return VERY_GOOD
    if score >= 55:
        return GOOD
    if score < 40:
        return NEEDS_IMPROVEMENT
    return SATISFACTORY


def rating_rank(label: str) -> int:
    """Position of ``label`` in :data:`RATING_ORDER`.

    Raises:
        ValueError: If ``label`` is not a known rating.
    """
    try:
        return _RANKS[label]
    except KeyError:
        raise ValueError(f"Unknown rating label: {label!r}") from None


def is_known_rating(label: str) -> bool:
    return label in _RANKS
