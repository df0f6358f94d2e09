"""Exception types raised by the Argus scoring core."""

from __future__ import annotations


class ArgusError(Exception):
    """Base class for all Argus errors."""


class ProfileNotFoundError(ArgusError):
    """Raised when a user holding policies has no profile row."""

    def __init__(self, user_id: object) -> None:
        super().__init__(f"No profile found for user_id={user_id}")
        self.user_id = user_id


class EmptyPortfolioError(ArgusError):
    """Raised when a portfolio with zero active policies is scored."""
