from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from court_booking.domain.availability import OperatingHours
from court_booking.domain.errors import GateError, StateError, ValidationError
from court_booking.domain.services import (
    OverdueItem,
    assert_transition,
    days_overdue,
    enforce_no_overdue,
    ensure_editable,
    is_stale_pending,
    overdue_cutoff,
    refund_due,
    validate_booking_window,
    validate_players,
)
from court_booking.models import BookingStatus, PaymentStatus

MANILA = ZoneInfo("Asia/Manila")
TODAY = date(2026, 10, 18)
HOURS = OperatingHours()


def test_allowed_transitions() -> None:
    assert_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED)
    assert_transition(BookingStatus.NO_SHOW, BookingStatus.COMPLETED)
    assert_transition(BookingStatus.BLOCKED, BookingStatus.CANCELLED)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (BookingStatus.CANCELLED, BookingStatus.PENDING),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
        (BookingStatus.BLOCKED, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING),
    ],
)
def test_rejected_transitions(current: BookingStatus, target: BookingStatus) -> None:
    with pytest.raises(StateError) as excinfo:
        assert_transition(current, target)
    assert excinfo.value.reason == "invalid-transition"


def test_terminal_bookings_are_not_editable() -> None:
    ensure_editable(BookingStatus.CONFIRMED)
    with pytest.raises(StateError) as excinfo:
        ensure_editable(BookingStatus.COMPLETED)
    assert excinfo.value.reason == "terminal-state"


def test_window_returns_end_hour() -> None:
    assert validate_booking_window(TODAY, 20, 2, today=TODAY, hours=HOURS) == 22


@pytest.mark.parametrize(
    ("booking_date", "start_hour", "duration", "reason"),
    [
        (date(2026, 10, 17), 10, 1, "past-date"),
        (TODAY, 4, 1, "out-of-hours"),
        (TODAY, 22, 1, "out-of-hours"),
        (TODAY, 10, 0, "bad-duration"),
        (TODAY, 10, 5, "bad-duration"),
        (TODAY, 20, 3, "out-of-hours"),
    ],
)
def test_window_rejections(booking_date: date, start_hour: int, duration: int, reason: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_booking_window(booking_date, start_hour, duration, today=TODAY, hours=HOURS)
    assert excinfo.value.reason == reason


def test_administrative_window_allows_longer_blocks() -> None:
    assert validate_booking_window(TODAY, 6, 12, today=TODAY, hours=HOURS, administrative=True) == 18


def test_validate_players_strips_and_requires_names() -> None:
    assert validate_players([" Ana ", "Maria"]) == ["Ana", "Maria"]
    with pytest.raises(ValidationError) as excinfo:
        validate_players([])
    assert excinfo.value.reason == "no-players"
    with pytest.raises(ValidationError):
        validate_players(["Ana", "  "])


def test_overdue_cutoff_is_start_of_grace_day() -> None:
    # Start of 2026-10-17 in Manila.
    assert overdue_cutoff(TODAY, MANILA) == datetime(2026, 10, 16, 16, 0)
    assert overdue_cutoff(TODAY, MANILA, grace_days=0) == datetime(2026, 10, 17, 16, 0)


def test_days_overdue_rounds_up_and_floors_at_zero() -> None:
    now = datetime(2026, 10, 18, 2, 0)
    assert days_overdue(datetime(2026, 10, 16, 2, 0), now) == 2
    assert days_overdue(datetime(2026, 10, 17, 1, 0), now) == 2
    assert days_overdue(datetime(2026, 10, 19, 0, 0), now) == 0


def test_gate_passes_without_items_and_lists_them_otherwise() -> None:
    enforce_no_overdue([])
    item = OverdueItem(
        item_id=9,
        kind="obligation",
        amount=Decimal("125.00"),
        due_at=datetime(2026, 10, 16, 2, 0),
        days_overdue=2,
        description="Court reservation - 2026-10-14 18:00-20:00",
    )
    with pytest.raises(GateError) as excinfo:
        enforce_no_overdue([item])
    payload = excinfo.value.to_payload()
    assert payload["reason"] == "overdue-payments-exist"
    assert payload["detail"]["overdue"] == [
        {
            "id": 9,
            "kind": "obligation",
            "amount": "125.00",
            "due_date": "2026-10-16T02:00:00",
            "days_overdue": 2,
            "description": "Court reservation - 2026-10-14 18:00-20:00",
        }
    ]


def test_refund_only_for_paid_credit_bookings() -> None:
    assert refund_due(PaymentStatus.PAID, True, Decimal("390")) == Decimal("390")
    assert refund_due(PaymentStatus.PENDING, True, Decimal("390")) is None
    assert refund_due(PaymentStatus.PAID, False, Decimal("390")) is None
    assert refund_due(PaymentStatus.PAID, True, Decimal("0")) is None


def test_stale_pending_is_strictly_before_today() -> None:
    assert is_stale_pending(BookingStatus.PENDING, date(2026, 10, 17), TODAY)
    assert not is_stale_pending(BookingStatus.PENDING, TODAY, TODAY)
    assert not is_stale_pending(BookingStatus.CONFIRMED, date(2026, 10, 17), TODAY)
