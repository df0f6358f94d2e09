"""Age derivation. Age is never stored; it is recomputed at every use."""

from __future__ import annotations

from datetime import date
from typing import Optional


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``.

    The year is only counted once the birthday has passed.
    """
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def age_or_default(
    date_of_birth: Optional[date], today: date, default: int
) -> int:
    """Age for a possibly-missing date of birth."""
    if date_of_birth is None:
        return default
    return age_on(date_of_birth, today)
