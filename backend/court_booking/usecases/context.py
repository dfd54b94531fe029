from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from ..domain.allocation import NoMemberPolicy
from ..domain.availability import ClosureRule, OperatingHours
from ..domain.pricing import FeeBreakdown, TariffConfig
from ..domain.repositories import BookingRepository, ExternalBlockSource, ObligationRepository, RosterRepository
from ..models import Booking, BookingStatus, Obligation
from ..utils.time import local_today


@dataclass
class BookingContext:
    """Repositories plus the facility rules one request runs against."""

    bookings: BookingRepository
    obligations: ObligationRepository
    roster: RosterRepository
    blocks: ExternalBlockSource
    hours: OperatingHours
    tariff: TariffConfig
    closure: ClosureRule | None
    tz: ZoneInfo
    now: datetime  # UTC-naive
    overdue_grace_days: int = 1
    advance_due_days: int = 7
    no_member_policy: NoMemberPolicy = NoMemberPolicy.WAIVE

    @property
    def today(self) -> date:
        return local_today(self.tz, now=self.now)


@dataclass
class BookingOutcome:
    """A mutated booking with every side effect collaborators must hear about."""

    booking: Booking
    status_from: BookingStatus | None = None
    fee: FeeBreakdown | None = None
    created: list[Obligation] = field(default_factory=list)
    cancelled: list[Obligation] = field(default_factory=list)
    swept: list[Booking] = field(default_factory=list)
    refund_due: Decimal | None = None
    reallocated: bool = False
