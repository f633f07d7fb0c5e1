# backend/booking_engine/errors.py
"""
Typed outcomes of engine operations.

Every rejection is raised as one of these and carries a message that can be
shown to the user as-is. The HTTP layer maps ``status_code`` onto the
response; nothing here is retried except StorageUnavailableError's cause.
"""

from typing import Optional

from .money import format_cents


class EngineError(Exception):
    """Base class for all engine rejections."""

    code = "engine_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(EngineError):
    """Malformed input: zero duration, end before start, bad rating."""

    code = "validation_error"
    status_code = 400


class NotFoundError(EngineError):
    code = "not_found"
    status_code = 404


class OverlapError(EngineError):
    """Weekly rule intersects an existing rule on the same day."""

    code = "overlap"
    status_code = 409


class DuplicateError(EngineError):
    code = "duplicate"
    status_code = 409


class SlotUnavailableError(EngineError):
    """Slot lost to a concurrent booking, blocked, or outside the window."""

    code = "slot_unavailable"
    status_code = 409


class InsufficientFundsError(EngineError):
    code = "insufficient_funds"
    status_code = 402

    def __init__(self, shortfall_cents: int, message: Optional[str] = None):
        self.shortfall_cents = shortfall_cents
        super().__init__(
            message or f"Insufficient balance: needs {format_cents(shortfall_cents)} more"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortfall"] = format_cents(self.shortfall_cents, symbol=False)
        return data


class NotEligibleError(EngineError):
    """Review, acceptance or cancellation preconditions not met."""

    code = "not_eligible"
    status_code = 403


class NotCancellableError(EngineError):
    code = "not_cancellable"
    status_code = 409


class StorageUnavailableError(EngineError):
    """The store kept failing after bounded retries."""

    code = "storage_unavailable"
    status_code = 503
