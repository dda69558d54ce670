"""Progression error taxonomy.

Rejections (validation, eligibility, conflict, not-found) are turned into
structured ``success=False`` results by ``ProgressService``. ``StorageError``
is the only one that reaches the caller as an exception, and it is always
safe to retry.
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for progression errors."""

    code = "progress_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProgressError):
    """Malformed input: bad referral code format, missing or negative fields."""

    code = "validation_error"


class EligibilityError(ProgressError):
    """Streak claimed before the 24h cooldown elapsed."""

    code = "not_eligible"

    def __init__(self, message: str, hours_remaining: float) -> None:
        super().__init__(message)
        self.hours_remaining = hours_remaining


class ConflictError(ProgressError):
    """Referral already used, or self-referral."""

    code = "conflict"


class NotFoundError(ProgressError):
    """Referral code or progress record resolves to no user."""

    code = "not_found"


class StorageError(ProgressError):
    """Read/write failure in the progress store. Nothing was committed."""

    code = "storage_error"
    retryable = True


class ProgressNotFoundError(NotFoundError):
    """The authenticated user has no progress record yet."""


class InsufficientHintsError(ConflictError):
    """Hint balance is lower than the price of the hint."""

    code = "insufficient_hints"

    def __init__(self, message: str, balance: int, cost: int) -> None:
        super().__init__(message)
        self.balance = balance
        self.cost = cost
