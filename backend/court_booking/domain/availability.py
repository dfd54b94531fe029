"""Timeline conflict rules for the single court.

All functions are pure over a snapshot of the day: the bookings on that date,
the external event overlay and the recurring closure rule. Ranges are
half-open hour intervals ``[start, end)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

from ..models import ACTIVE_STATUSES, BookingStatus
from .errors import ConflictError


@dataclass(frozen=True)
class OperatingHours:
    opening_hour: int = 5
    closing_hour: int = 22
    max_duration: int = 4
    max_block_duration: int = 12

    @property
    def last_start_hour(self) -> int:
        return self.closing_hour - 1


@dataclass(frozen=True)
class ClosureRule:
    """A weekday whose ``hours`` can never be occupied (they stay valid end boundaries)."""

    weekday: int
    hours: frozenset[int]

    def hours_for(self, day: date) -> frozenset[int]:
        return self.hours if day.weekday() == self.weekday else frozenset()


@dataclass(frozen=True)
class BookedRange:
    booking_id: int
    start_hour: int
    end_hour: int
    status: BookingStatus

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class ExternalEvent:
    event_id: int
    title: str
    hours: frozenset[int]


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicting_hours: list[int] = field(default_factory=list)
    conflicting_booking_ids: list[int] = field(default_factory=list)
    external_event: ExternalEvent | None = None
    external_hours: list[int] = field(default_factory=list)
    closure_hours: list[int] = field(default_factory=list)

    @property
    def sources(self) -> list[str]:
        sources = [f"booking:{booking_id}" for booking_id in self.conflicting_booking_ids]
        if self.closure_hours:
            sources.append("recurring-closure")
        if self.external_event is not None:
            sources.append(f"external:{self.external_event.event_id}")
        return sources


@dataclass(frozen=True)
class HourAvailability:
    hour: int
    available_as_start: bool
    available_as_end: bool
    occupying_booking_id: int | None = None
    occupying_status: BookingStatus | None = None
    external_event: ExternalEvent | None = None
    closure: bool = False

    @property
    def time_display(self) -> str:
        return f"{self.hour}:00 - {self.hour + 1}:00"


def ranges_conflict(start: int, end: int, other_start: int, other_end: int) -> bool:
    """True if ``[other_start, other_end)`` collides with the candidate ``[start, end)``."""
    starts_inside = start <= other_start < end
    ends_inside = start < other_end <= end
    contains = other_start <= start and other_end >= end
    return starts_inside or ends_inside or contains


def _active(bookings: Iterable[BookedRange], exclude_booking_id: int | None) -> list[BookedRange]:
    return [b for b in bookings if b.is_active and b.booking_id != exclude_booking_id]


def check_range(
    day: date,
    start_hour: int,
    end_hour: int,
    bookings: Sequence[BookedRange],
    events: Sequence[ExternalEvent] = (),
    closure: ClosureRule | None = None,
    exclude_booking_id: int | None = None,
) -> AvailabilityResult:
    requested = set(range(start_hour, end_hour))

    conflicting_ids: list[int] = []
    conflicting_hours: set[int] = set()
    for booked in _active(bookings, exclude_booking_id):
        if ranges_conflict(start_hour, end_hour, booked.start_hour, booked.end_hour):
            conflicting_ids.append(booked.booking_id)
            conflicting_hours |= requested & set(range(booked.start_hour, booked.end_hour))

    closed = sorted(requested & closure.hours_for(day)) if closure else []
    conflicting_hours |= set(closed)

    event: ExternalEvent | None = None
    external_hours: list[int] = []
    for candidate in events:
        overlap = requested & candidate.hours
        if overlap:
            event, external_hours = candidate, sorted(overlap)
            break

    return AvailabilityResult(
        available=not conflicting_ids and not closed and event is None,
        conflicting_hours=sorted(conflicting_hours),
        conflicting_booking_ids=conflicting_ids,
        external_event=event,
        external_hours=external_hours,
        closure_hours=closed,
    )


def is_range_available(
    day: date,
    start_hour: int,
    end_hour: int,
    bookings: Sequence[BookedRange],
    events: Sequence[ExternalEvent] = (),
    closure: ClosureRule | None = None,
    exclude_booking_id: int | None = None,
) -> bool:
    return check_range(day, start_hour, end_hour, bookings, events, closure, exclude_booking_id).available


def raise_for_conflicts(result: AvailabilityResult, start_hour: int, end_hour: int) -> None:
    if result.available:
        return
    requested_range = f"{start_hour}:00-{end_hour}:00"
    event = result.external_event
    if result.conflicting_booking_ids or result.closure_hours or event is None:
        raise ConflictError(
            f"One or more hours in {requested_range} are already reserved or closed",
            reason="slot-conflict",
            detail={
                "requested_range": requested_range,
                "conflicting_hours": result.conflicting_hours,
                "sources": result.sources,
            },
        )
    raise ConflictError(
        f'Reservation conflicts with event "{event.title}"',
        reason="external-block-conflict",
        detail={
            "requested_range": requested_range,
            "event": {"id": event.event_id, "title": event.title, "blocked_hours": sorted(event.hours)},
            "conflicting_hours": result.external_hours,
        },
    )


def hour_grid(
    day: date,
    hours: OperatingHours,
    bookings: Sequence[BookedRange],
    events: Sequence[ExternalEvent] = (),
    closure: ClosureRule | None = None,
    exclude_booking_id: int | None = None,
) -> list[HourAvailability]:
    """Per-hour start/end usability from opening to closing hour inclusive.

    A start needs the hour itself free. An end only needs the boundary not to
    be straddled, so back-to-back bookings share it. The closing hour is an
    end boundary only.
    """
    active = _active(bookings, exclude_booking_id)
    closed = closure.hours_for(day) if closure else frozenset()
    grid: list[HourAvailability] = []
    for hour in range(hours.opening_hour, hours.closing_hour + 1):
        occupying = next((b for b in active if b.start_hour <= hour < b.end_hour), None)
        straddled = any(b.start_hour < hour < b.end_hour for b in active)
        event = next((e for e in events if hour in e.hours), None)
        event_straddles = any(hour in e.hours and hour - 1 in e.hours for e in events)
        is_closing = hour >= hours.closing_hour

        grid.append(
            HourAvailability(
                hour=hour,
                available_as_start=not is_closing and occupying is None and event is None and hour not in closed,
                available_as_end=hour > hours.opening_hour and not straddled and not event_straddles,
                occupying_booking_id=occupying.booking_id if occupying else None,
                occupying_status=occupying.status if occupying else None,
                external_event=event,
                closure=hour in closed,
            )
        )
    return grid
