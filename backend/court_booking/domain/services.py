from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Sequence
from zoneinfo import ZoneInfo

from ..models import BookingStatus, PaymentStatus
from ..utils.time import start_of_day_utc
from .availability import OperatingHours
from .errors import GateError, StateError, ValidationError

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW},
    BookingStatus.NO_SHOW: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.BLOCKED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


@dataclass(frozen=True)
class OverdueItem:
    item_id: int
    kind: str  # "obligation" or "booking"
    amount: Decimal
    due_at: datetime
    days_overdue: int
    description: str

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.item_id,
            "kind": self.kind,
            "amount": str(self.amount),
            "due_date": self.due_at.isoformat(),
            "days_overdue": self.days_overdue,
            "description": self.description,
        }


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise StateError(
            f"Invalid booking transition: {current} -> {target}",
            reason="invalid-transition",
            detail={"from": str(current), "to": str(target)},
        )


def ensure_editable(status: BookingStatus) -> None:
    if status in TERMINAL_STATUSES:
        raise StateError(
            f"Cannot change a {status} booking",
            reason="terminal-state",
            detail={"status": str(status)},
        )


def validate_booking_window(
    booking_date: date,
    start_hour: int,
    duration: int,
    *,
    today: date,
    hours: OperatingHours,
    administrative: bool = False,
) -> int:
    """Check date, start hour, duration and closing bound in that order; return the end hour."""
    if booking_date < today:
        raise ValidationError(
            "Cannot book the court for a past date",
            reason="past-date",
            detail={"date": booking_date.isoformat(), "today": today.isoformat()},
        )
    if not hours.opening_hour <= start_hour <= hours.last_start_hour:
        raise ValidationError(
            f"Court operates from {hours.opening_hour}:00 to {hours.closing_hour}:00",
            reason="out-of-hours",
            detail={"start_hour": start_hour, "opening_hour": hours.opening_hour, "closing_hour": hours.closing_hour},
        )
    max_duration = hours.max_block_duration if administrative else hours.max_duration
    if not 1 <= duration <= max_duration:
        raise ValidationError(
            f"Duration must be between 1 and {max_duration} hours",
            reason="bad-duration",
            detail={"duration": duration, "max_duration": max_duration},
        )
    end_hour = start_hour + duration
    if end_hour > hours.closing_hour:
        raise ValidationError(
            f"Booking from {start_hour}:00 for {duration}h would end at {end_hour}:00, after closing",
            reason="out-of-hours",
            detail={"end_hour": end_hour, "closing_hour": hours.closing_hour},
        )
    return end_hour


def validate_players(names: Sequence[str]) -> list[str]:
    cleaned = [name.strip() for name in names]
    if not cleaned or any(not name for name in cleaned):
        raise ValidationError(
            "At least one named player is required",
            reason="no-players",
            detail={"participant_names": list(names)},
        )
    return cleaned


def overdue_cutoff(today: date, tz: ZoneInfo, grace_days: int = 1) -> datetime:
    """Anything due strictly before this UTC-naive moment is overdue."""
    return start_of_day_utc(today - timedelta(days=grace_days), tz)


def days_overdue(due_at: datetime, now: datetime) -> int:
    return max(math.ceil((now - due_at).total_seconds() / 86400), 0)


def enforce_no_overdue(items: Sequence[OverdueItem]) -> None:
    if items:
        raise GateError(
            "You have overdue payments. Please settle them before making a new reservation.",
            detail={"overdue": [item.to_dict() for item in items]},
        )


def is_stale_pending(status: BookingStatus, booking_date: date, today: date) -> bool:
    return status == BookingStatus.PENDING and booking_date < today


def refund_due(payment_status: PaymentStatus, paid_with_credit: bool, total_fee: Decimal) -> Decimal | None:
    """Amount the credit collaborator must refund on cancellation, if any."""
    if paid_with_credit and payment_status == PaymentStatus.PAID and total_fee > 0:
        return total_fee
    return None
