from datetime import date, datetime, timezone
from decimal import Decimal
from itertools import count
from typing import Any, Callable, Sequence
from zoneinfo import ZoneInfo

import pytest
from court_booking.domain.allocation import NoMemberPolicy
from court_booking.domain.availability import ClosureRule, ExternalEvent, OperatingHours
from court_booking.domain.players import Participant, RosterEntry
from court_booking.domain.pricing import TariffConfig
from court_booking.models import (
    BlockReason,
    Booking,
    BookingParticipant,
    BookingStatus,
    DueDatePolicy,
    Obligation,
    ObligationStatus,
    PaymentStatus,
)
from court_booking.usecases.context import BookingContext
from sqlalchemy.exc import IntegrityError

MANILA = ZoneInfo("Asia/Manila")
# 2026-10-18 10:00 in Manila, a Sunday.
NOW = datetime(2026, 10, 18, 2, 0)
PLAY_DAY = date(2026, 10, 20)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _rows(participants: Sequence[Participant]) -> list[BookingParticipant]:
    return [
        BookingParticipant(position=i, name=p.name, kind=p.kind, member_id=p.member_id)
        for i, p in enumerate(participants)
    ]


class FakeBookingRepo:
    """In-memory bookings honouring the (date, active start hour) unique key."""

    def __init__(self) -> None:
        self.rows: dict[int, Booking] = {}
        self._ids = count(1)

    def _check_unique(self, booking: Booking) -> None:
        for other in self.rows.values():
            if (
                other.id != booking.id
                and other.booking_date == booking.booking_date
                and other.active_start_hour is not None
                and other.active_start_hour == booking.active_start_hour
            ):
                raise IntegrityError("insert bookings", None, Exception("uq_bookings_active_start"))

    async def get(self, booking_id: int) -> Booking | None:
        return self.rows.get(booking_id)

    async def get_for_update(self, booking_id: int) -> Booking | None:
        return self.rows.get(booking_id)

    async def list_for_date(self, day: date) -> list[Booking]:
        return sorted((b for b in self.rows.values() if b.booking_date == day), key=lambda b: b.start_hour)

    async def create(
        self,
        *,
        reserver_id: int,
        booking_date: date,
        start_hour: int,
        duration: int,
        status: BookingStatus,
        payment_status: PaymentStatus,
        total_fee: Decimal,
        participants: Sequence[Participant],
        block_reason: BlockReason | None = None,
        block_notes: str | None = None,
    ) -> Booking:
        booking = Booking(
            id=next(self._ids),
            reserver_id=reserver_id,
            booking_date=booking_date,
            status=status,
            payment_status=payment_status,
            total_fee=total_fee,
            paid_with_credit=False,
            block_reason=block_reason,
            block_notes=block_notes,
            version=1,
            created_at=_now(),
            updated_at=_now(),
            participants=_rows(participants),
        )
        booking.set_range(start_hour, duration)
        self._check_unique(booking)
        self.rows[booking.id] = booking
        return booking

    async def save(self, booking: Booking) -> Booking:
        booking.sync_occupancy()
        self._check_unique(booking)
        self.rows[booking.id] = booking
        return booking

    async def replace_participants(self, booking: Booking, participants: Sequence[Participant]) -> Booking:
        booking.participants = _rows(participants)
        return await self.save(booking)

    async def mark_stale_no_show(self, today: date) -> list[Booking]:
        stale = [b for b in self.rows.values() if b.status == BookingStatus.PENDING and b.booking_date < today]
        for booking in stale:
            booking.set_status(BookingStatus.NO_SHOW)
            booking.version += 1
        return stale

    async def list_unpaid_past(self, reserver_id: int, before: date) -> list[Booking]:
        return [
            b
            for b in self.rows.values()
            if b.reserver_id == reserver_id
            and b.payment_status == PaymentStatus.PENDING
            and b.booking_date < before
            and b.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.NO_SHOW)
        ]


class FakeObligationRepo:
    def __init__(self) -> None:
        self.rows: list[Obligation] = []
        self._ids = count(1)

    async def list_for_booking(self, booking_id: int) -> list[Obligation]:
        return [o for o in self.rows if o.booking_id == booking_id]

    async def list_pending_for_booking(self, booking_id: int) -> list[Obligation]:
        return [o for o in self.rows if o.booking_id == booking_id and o.status == ObligationStatus.PENDING]

    async def cancel(self, obligations: Sequence[Obligation]) -> list[Obligation]:
        cancelled = []
        for obligation in obligations:
            if obligation.status == ObligationStatus.PENDING:
                obligation.status = ObligationStatus.CANCELLED
                cancelled.append(obligation)
        return cancelled

    async def create(
        self,
        *,
        booking_id: int,
        member_id: int,
        amount: Decimal,
        due_at: datetime,
        due_policy: DueDatePolicy,
        is_reserver: bool,
        member_share: Decimal,
        guest_fees: Decimal,
        description: str,
    ) -> Obligation:
        obligation = Obligation(
            id=next(self._ids),
            booking_id=booking_id,
            member_id=member_id,
            amount=amount,
            due_at=due_at,
            due_policy=due_policy,
            status=ObligationStatus.PENDING,
            is_reserver=is_reserver,
            member_share=member_share,
            guest_fees=guest_fees,
            description=description,
            created_at=_now(),
            updated_at=_now(),
        )
        self.rows.append(obligation)
        return obligation

    async def list_overdue_for_member(self, member_id: int, cutoff: datetime) -> list[Obligation]:
        return [
            o
            for o in self.rows
            if o.member_id == member_id and o.status == ObligationStatus.PENDING and o.due_at < cutoff
        ]

    def active_for(self, booking_id: int) -> list[Obligation]:
        return [o for o in self.rows if o.booking_id == booking_id and o.status != ObligationStatus.CANCELLED]


class FakeRoster:
    def __init__(self, entries: Sequence[RosterEntry]) -> None:
        self.entries = list(entries)

    async def list_approved(self) -> list[RosterEntry]:
        return list(self.entries)


class FakeBlocks:
    def __init__(self, events: dict[date, list[ExternalEvent]] | None = None) -> None:
        self.events = events or {}

    async def list_for_date(self, day: date) -> list[ExternalEvent]:
        return list(self.events.get(day, []))


ROSTER = [
    RosterEntry(member_id=1, full_name="Jon Dela Cruz"),
    RosterEntry(member_id=2, full_name="Maria Santos"),
    RosterEntry(member_id=3, full_name="Ana Reyes"),
]


@pytest.fixture
def make_ctx() -> Callable[..., BookingContext]:
    def _make(
        *,
        now: datetime = NOW,
        tariff: TariffConfig | None = None,
        closure: ClosureRule | None = None,
        policy: NoMemberPolicy = NoMemberPolicy.WAIVE,
        roster: Sequence[RosterEntry] = ROSTER,
        events: dict[date, list[ExternalEvent]] | None = None,
        **overrides: Any,
    ) -> BookingContext:
        return BookingContext(
            bookings=FakeBookingRepo(),
            obligations=FakeObligationRepo(),
            roster=FakeRoster(roster),
            blocks=FakeBlocks(events),
            hours=overrides.pop("hours", OperatingHours()),
            tariff=tariff or TariffConfig(),
            closure=closure,
            tz=MANILA,
            now=now,
            no_member_policy=policy,
            **overrides,
        )

    return _make
