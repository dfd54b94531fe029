from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.availability import ExternalEvent
from ..domain.players import Participant, RosterEntry
from ..domain.repositories import BookingRepository, ExternalBlockSource, ObligationRepository, RosterRepository
from ..models import (
    BlockReason,
    Booking,
    BookingParticipant,
    BookingStatus,
    DueDatePolicy,
    ExternalBlock,
    ExternalBlockStatus,
    Member,
    Obligation,
    ObligationStatus,
    PaymentStatus,
)

ROSTER_ROLES = ("member", "admin", "superadmin")


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _participant_rows(participants: Sequence[Participant]) -> List[BookingParticipant]:
    return [
        BookingParticipant(position=index, name=p.name, kind=p.kind, member_id=p.member_id)
        for index, p in enumerate(participants)
    ]


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, booking_id: int) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    async def get_for_update(self, booking_id: int) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def list_for_date(self, day: date) -> List[Booking]:
        stmt = select(Booking).where(Booking.booking_date == day).order_by(Booking.start_hour)
        return list((await self.session.scalars(stmt)).all())

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
        now = _now()
        booking = Booking(
            reserver_id=reserver_id,
            booking_date=booking_date,
            status=status,
            payment_status=payment_status,
            total_fee=total_fee,
            paid_with_credit=False,
            block_reason=block_reason,
            block_notes=block_notes,
            version=1,
            created_at=now,
            updated_at=now,
            participants=_participant_rows(participants),
        )
        booking.set_range(start_hour, duration)
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def save(self, booking: Booking) -> Booking:
        booking.sync_occupancy()
        booking.updated_at = _now()
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def replace_participants(self, booking: Booking, participants: Sequence[Participant]) -> Booking:
        booking.participants.clear()
        # Old rows must be gone before new positions reuse the unique key.
        await self.session.flush()
        booking.participants.extend(_participant_rows(participants))
        return await self.save(booking)

    async def mark_stale_no_show(self, today: date) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING, Booking.booking_date < today)
            .with_for_update()
        )
        stale = list((await self.session.scalars(stmt)).all())
        for booking in stale:
            booking.set_status(BookingStatus.NO_SHOW)
            booking.version += 1
            booking.updated_at = _now()
        if stale:
            await self.session.flush()
        return stale

    async def list_unpaid_past(self, reserver_id: int, before: date) -> List[Booking]:
        stmt = select(Booking).where(
            Booking.reserver_id == reserver_id,
            Booking.payment_status == PaymentStatus.PENDING,
            Booking.booking_date < before,
            Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.NO_SHOW]),
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyObligationRepository(ObligationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_booking(self, booking_id: int) -> List[Obligation]:
        stmt = select(Obligation).where(Obligation.booking_id == booking_id).order_by(Obligation.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_pending_for_booking(self, booking_id: int) -> List[Obligation]:
        stmt = (
            select(Obligation)
            .where(Obligation.booking_id == booking_id, Obligation.status == ObligationStatus.PENDING)
            .with_for_update()
        )
        return list((await self.session.scalars(stmt)).all())

    async def cancel(self, obligations: Sequence[Obligation]) -> List[Obligation]:
        now = _now()
        cancelled: List[Obligation] = []
        for obligation in obligations:
            if obligation.status != ObligationStatus.PENDING:
                continue
            obligation.status = ObligationStatus.CANCELLED
            obligation.updated_at = now
            self.session.add(obligation)
            cancelled.append(obligation)
        if cancelled:
            await self.session.flush()
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
        now = _now()
        obligation = Obligation(
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
            created_at=now,
            updated_at=now,
        )
        self.session.add(obligation)
        await self.session.flush()
        return obligation

    async def list_overdue_for_member(self, member_id: int, cutoff: datetime) -> List[Obligation]:
        stmt = select(Obligation).where(
            Obligation.member_id == member_id,
            Obligation.status == ObligationStatus.PENDING,
            Obligation.due_at < cutoff,
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyRosterRepository(RosterRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_approved(self) -> List[RosterEntry]:
        stmt = select(Member.id, Member.full_name).where(Member.is_approved.is_(True), Member.role.in_(ROSTER_ROLES))
        rows = await self.session.execute(stmt)
        return [RosterEntry(member_id=int(member_id), full_name=full_name) for member_id, full_name in rows.all()]


class SqlAlchemyExternalBlockSource(ExternalBlockSource):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_date(self, day: date) -> List[ExternalEvent]:
        stmt = select(ExternalBlock).where(
            ExternalBlock.event_date == day,
            ExternalBlock.status.in_([ExternalBlockStatus.ACTIVE, ExternalBlockStatus.CLOSED]),
        )
        blocks = (await self.session.scalars(stmt)).all()
        return [
            ExternalEvent(event_id=block.id, title=block.title, hours=frozenset(int(h) for h in block.blocked_hours or []))
            for block in blocks
        ]

