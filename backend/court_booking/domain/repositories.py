from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, Sequence

from ..models import BlockReason, Booking, BookingStatus, DueDatePolicy, Obligation, PaymentStatus
from .availability import ExternalEvent
from .players import Participant, RosterEntry


class BookingRepository(Protocol):
    async def get(self, booking_id: int) -> Booking | None: ...

    async def get_for_update(self, booking_id: int) -> Booking | None: ...

    async def list_for_date(self, day: date) -> list[Booking]: ...

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
    ) -> Booking: ...

    async def save(self, booking: Booking) -> Booking: ...

    async def replace_participants(self, booking: Booking, participants: Sequence[Participant]) -> Booking: ...

    async def mark_stale_no_show(self, today: date) -> list[Booking]: ...

    async def list_unpaid_past(self, reserver_id: int, before: date) -> list[Booking]: ...


class ObligationRepository(Protocol):
    async def list_for_booking(self, booking_id: int) -> list[Obligation]: ...

    async def list_pending_for_booking(self, booking_id: int) -> list[Obligation]: ...

    async def cancel(self, obligations: Sequence[Obligation]) -> list[Obligation]: ...

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
    ) -> Obligation: ...

    async def list_overdue_for_member(self, member_id: int, cutoff: datetime) -> list[Obligation]: ...


class RosterRepository(Protocol):
    async def list_approved(self) -> list[RosterEntry]: ...


class ExternalBlockSource(Protocol):
    async def list_for_date(self, day: date) -> list[ExternalEvent]: ...
