import logging
from decimal import Decimal
from typing import Sequence

from ..domain.allocation import AllocationLine, allocate, compute_due_date, describe, quantize, verify_allocation
from ..domain.errors import NotFoundError, StateError, ValidationError
from ..domain.players import Participant
from ..domain.pricing import FeeBreakdown
from ..models import Booking, BookingStatus, DueDatePolicy, Obligation
from .context import BookingContext

logger = logging.getLogger(__name__)

UNBILLABLE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.BLOCKED})


def plan_allocation(
    ctx: BookingContext,
    fee: FeeBreakdown,
    participants: Sequence[Participant],
    *,
    reserver_id: int,
    total_fee: Decimal,
) -> list[AllocationLine]:
    """Split ``total_fee`` across members and check the lines add up to it."""
    lines = allocate(fee, participants, reserver_id, ctx.no_member_policy, total_fee=total_fee)
    verify_allocation(lines, total_fee)
    if not lines and total_fee > 0:
        logger.warning("no member participants; fee %s waived for reserver %s", total_fee, reserver_id)
    return lines


async def persist_allocation(
    ctx: BookingContext,
    booking: Booking,
    lines: Sequence[AllocationLine],
) -> list[Obligation]:
    """Persist one post-play obligation per line against ``booking``."""
    due_at = compute_due_date(
        DueDatePolicy.POST_PLAY,
        booking.booking_date,
        now=ctx.now,
        tz=ctx.tz,
        advance_days=ctx.advance_due_days,
    )
    created: list[Obligation] = []
    for line in lines:
        obligation = await ctx.obligations.create(
            booking_id=booking.id,
            member_id=line.member_id,
            amount=line.amount,
            due_at=due_at,
            due_policy=DueDatePolicy.POST_PLAY,
            is_reserver=line.is_reserver,
            member_share=line.member_share,
            guest_fees=line.guest_fees,
            description=describe(line.is_reserver, booking.booking_date, booking.start_hour, booking.end_hour),
        )
        created.append(obligation)
    return created


async def cancel_pending(ctx: BookingContext, booking: Booking) -> list[Obligation]:
    pending = await ctx.obligations.list_pending_for_booking(booking.id)
    cancelled = await ctx.obligations.cancel(pending)
    if cancelled:
        logger.info("cancelled %d pending obligation(s) of booking %s", len(cancelled), booking.id)
    return cancelled


async def reallocate(
    ctx: BookingContext,
    booking: Booking,
    lines: Sequence[AllocationLine],
) -> tuple[list[Obligation], list[Obligation]]:
    """Cancel every pending obligation of ``booking`` and persist ``lines`` in its place.

    Runs inside the caller's transaction, so the booking is never seen without
    a consistent obligation set.
    """
    cancelled = await cancel_pending(ctx, booking)
    created = await persist_allocation(ctx, booking, lines)
    return cancelled, created


async def create_manual_obligation(
    ctx: BookingContext,
    *,
    booking_id: int,
    member_id: int,
    amount: Decimal,
    description: str | None = None,
) -> tuple[Obligation, Booking]:
    booking = await ctx.bookings.get(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found", detail={"booking_id": booking_id})
    if booking.status in UNBILLABLE_STATUSES:
        raise StateError(
            f"Cannot bill a {booking.status} booking",
            reason="not-billable",
            detail={"booking_id": booking.id, "status": str(booking.status)},
        )
    if amount <= 0:
        raise ValidationError(
            "Obligation amount must be positive",
            reason="bad-amount",
            detail={"amount": str(amount)},
        )
    roster = await ctx.roster.list_approved()
    if not any(entry.member_id == member_id for entry in roster):
        raise NotFoundError("Member not found on the approved roster", detail={"member_id": member_id})

    is_reserver = member_id == booking.reserver_id
    amount = quantize(amount)
    obligation = await ctx.obligations.create(
        booking_id=booking.id,
        member_id=member_id,
        amount=amount,
        due_at=compute_due_date(
            DueDatePolicy.EARLIEST_OF_WEEK_OR_DAY_BEFORE,
            booking.booking_date,
            now=ctx.now,
            tz=ctx.tz,
            advance_days=ctx.advance_due_days,
        ),
        due_policy=DueDatePolicy.EARLIEST_OF_WEEK_OR_DAY_BEFORE,
        is_reserver=is_reserver,
        member_share=amount,
        guest_fees=Decimal("0.00"),
        description=description or describe(is_reserver, booking.booking_date, booking.start_hour, booking.end_hour),
    )
    return obligation, booking
