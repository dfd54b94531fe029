from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base for rejections that carry a machine-readable reason and detail."""

    reason: str = "booking-error"

    def __init__(self, message: str, *, reason: str | None = None, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason
        self.detail: dict[str, Any] = detail or {}

    def to_payload(self) -> dict[str, Any]:
        return {"reason": self.reason, "message": self.message, "detail": self.detail}


class ValidationError(BookingError):
    reason = "validation-error"


class ConflictError(BookingError):
    reason = "slot-conflict"


class GateError(BookingError):
    reason = "overdue-payments-exist"


class StateError(BookingError):
    reason = "terminal-state"


class AllocationInconsistency(BookingError):
    reason = "allocation-drift"


class NotFoundError(BookingError):
    reason = "not-found"
