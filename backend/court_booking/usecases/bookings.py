import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy.exc import IntegrityError

from ..domain.allocation import quantize
from ..domain.errors import ConflictError, NotFoundError, StateError, ValidationError
from ..domain.players import GuestParticipant, MatchStrategy, MemberParticipant, Participant, classify
from ..domain.pricing import compute_fee
from ..domain.services import (
    OverdueItem,
    assert_transition,
    days_overdue,
    enforce_no_overdue,
    ensure_editable,
    overdue_cutoff,
    refund_due,
    validate_booking_window,
    validate_players,
)
from ..models import BlockReason, Booking, BookingStatus, Obligation, ObligationStatus, ParticipantKind, PaymentStatus
from ..utils.time import start_of_day_utc
from .availability import ensure_available, sweep_no_shows
from .context import BookingContext, BookingOutcome
from .obligations import cancel_pending, persist_allocation, plan_allocation, reallocate

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def participants_of(booking: Booking) -> list[Participant]:
    """Stored participant rows as the tagged union, classification unchanged."""
    result: list[Participant] = []
    for row in booking.participants:
        if row.kind == ParticipantKind.MEMBER and row.member_id is not None:
            result.append(MemberParticipant(name=row.name, member_id=row.member_id))
        else:
            result.append(GuestParticipant(name=row.name))
    return result


def active_obligations(obligations: Sequence[Obligation]) -> list[Obligation]:
    return [o for o in obligations if o.status != ObligationStatus.CANCELLED]


def _slot_taken(exc: IntegrityError, day: date, start_hour: int, end_hour: int) -> ConflictError:
    logger.warning("storage rejected booking %s %d-%d: %s", day, start_hour, end_hour, exc.orig)
    requested_range = f"{start_hour}:00-{end_hour}:00"
    return ConflictError(
        f"{requested_range} on {day.isoformat()} was booked by another request",
        reason="slot-conflict",
        detail={
            "requested_range": requested_range,
            "conflicting_hours": list(range(start_hour, end_hour)),
            "sources": ["storage-unique-key"],
        },
    )


async def _load_for_update(ctx: BookingContext, booking_id: int) -> Booking:
    booking = await ctx.bookings.get_for_update(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found", detail={"booking_id": booking_id})
    return booking


def _check_owner(booking: Booking, actor_id: int, is_admin: bool) -> None:
    # Other members' bookings are reported as missing.
    if not is_admin and booking.reserver_id != actor_id:
        raise NotFoundError("Booking not found", detail={"booking_id": booking.id})


def _check_version(booking: Booking, version: int | None) -> None:
    if version is not None and booking.version != version:
        raise ConflictError(
            "Booking was changed by someone else; reload and retry",
            reason="version-conflict",
            detail={"expected": version, "current": booking.version},
        )


async def list_overdue(ctx: BookingContext, *, member_id: int) -> list[OverdueItem]:
    """Obligations due before the grace cutoff plus unpaid bookings already played."""
    items: list[OverdueItem] = []
    cutoff = overdue_cutoff(ctx.today, ctx.tz, ctx.overdue_grace_days)
    for obligation in await ctx.obligations.list_overdue_for_member(member_id, cutoff):
        items.append(
            OverdueItem(
                item_id=obligation.id,
                kind="obligation",
                amount=obligation.amount,
                due_at=obligation.due_at,
                days_overdue=days_overdue(obligation.due_at, ctx.now),
                description=obligation.description,
            )
        )
    last_day = ctx.today - timedelta(days=ctx.overdue_grace_days)
    for booking in await ctx.bookings.list_unpaid_past(member_id, last_day):
        played_at = start_of_day_utc(booking.booking_date, ctx.tz)
        items.append(
            OverdueItem(
                item_id=booking.id,
                kind="booking",
                amount=booking.total_fee,
                due_at=played_at,
                days_overdue=days_overdue(played_at, ctx.now),
                description=(
                    f"Court reservation payment for {booking.booking_date.isoformat()} "
                    f"{booking.start_hour}:00-{booking.end_hour}:00"
                ),
            )
        )
    return items


async def get_booking(ctx: BookingContext, *, booking_id: int) -> tuple[Booking, list[Obligation]]:
    booking = await ctx.bookings.get(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found", detail={"booking_id": booking_id})
    return booking, await ctx.obligations.list_for_booking(booking.id)


async def list_bookings(ctx: BookingContext, *, day: date) -> list[Booking]:
    return await ctx.bookings.list_for_date(day)


async def create_booking(
    ctx: BookingContext,
    *,
    reserver_id: int,
    booking_date: date,
    start_hour: int,
    duration: int,
    participant_names: Sequence[str],
    requested_total_fee: Decimal | None = None,
) -> BookingOutcome:
    swept = await sweep_no_shows(ctx)
    overdue = await list_overdue(ctx, member_id=reserver_id)
    if overdue:
        logger.info("reserver %s blocked by %d overdue item(s)", reserver_id, len(overdue))
    enforce_no_overdue(overdue)

    end_hour = validate_booking_window(booking_date, start_hour, duration, today=ctx.today, hours=ctx.hours)
    names = validate_players(participant_names)
    await ensure_available(ctx, day=booking_date, start_hour=start_hour, end_hour=end_hour)

    participants = classify(names, await ctx.roster.list_approved(), MatchStrategy.STRICT)
    fee = compute_fee(start_hour, end_hour, participants, ctx.tariff)
    # A trusted upstream quote replaces the formula total; members are split around it.
    total_fee = quantize(requested_total_fee) if requested_total_fee is not None else fee.total
    lines = plan_allocation(ctx, fee, participants, reserver_id=reserver_id, total_fee=total_fee)

    try:
        booking = await ctx.bookings.create(
            reserver_id=reserver_id,
            booking_date=booking_date,
            start_hour=start_hour,
            duration=duration,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            total_fee=total_fee,
            participants=participants,
        )
    except IntegrityError as exc:
        raise _slot_taken(exc, booking_date, start_hour, end_hour) from exc

    created = await persist_allocation(ctx, booking, lines)
    logger.info(
        "booking %s created for %s %d-%d: fee=%s obligations=%d",
        booking.id,
        booking_date,
        start_hour,
        end_hour,
        total_fee,
        len(created),
    )
    return BookingOutcome(booking=booking, fee=fee, created=created, swept=swept, reallocated=True)


async def update_booking(
    ctx: BookingContext,
    *,
    booking_id: int,
    actor_id: int,
    is_admin: bool = False,
    booking_date: date | None = None,
    start_hour: int | None = None,
    duration: int | None = None,
    participant_names: Sequence[str] | None = None,
    version: int | None = None,
) -> BookingOutcome:
    """Apply the given fields; reallocate only when the range or players change."""
    swept = await sweep_no_shows(ctx)
    booking = await _load_for_update(ctx, booking_id)
    _check_owner(booking, actor_id, is_admin)
    ensure_editable(booking.status)
    if booking.status not in EDITABLE_STATUSES:
        raise StateError(
            f"A {booking.status} booking cannot be edited",
            reason="not-editable",
            detail={"status": str(booking.status)},
        )
    _check_version(booking, version)

    day = booking_date if booking_date is not None else booking.booking_date
    start = start_hour if start_hour is not None else booking.start_hour
    length = duration if duration is not None else booking.duration
    range_changed = (day, start, length) != (booking.booking_date, booking.start_hour, booking.duration)

    current_names = [row.name for row in booking.participants]
    names = validate_players(participant_names) if participant_names is not None else current_names
    players_changed = names != current_names

    outcome = BookingOutcome(booking=booking, status_from=booking.status, swept=swept)
    if not range_changed and not players_changed:
        return outcome

    end_hour = start + length
    if range_changed:
        end_hour = validate_booking_window(day, start, length, today=ctx.today, hours=ctx.hours)
        await ensure_available(ctx, day=day, start_hour=start, end_hour=end_hour, exclude_booking_id=booking.id)

    if players_changed:
        participants = classify(names, await ctx.roster.list_approved(), MatchStrategy.STRICT)
    else:
        participants = participants_of(booking)
    fee = compute_fee(start, end_hour, participants, ctx.tariff)
    lines = plan_allocation(ctx, fee, participants, reserver_id=booking.reserver_id, total_fee=fee.total)

    booking.booking_date = day
    booking.set_range(start, length)
    booking.total_fee = fee.total
    booking.version += 1
    try:
        if players_changed:
            await ctx.bookings.replace_participants(booking, participants)
        else:
            await ctx.bookings.save(booking)
    except IntegrityError as exc:
        raise _slot_taken(exc, day, start, end_hour) from exc

    cancelled, created = await reallocate(ctx, booking, lines)
    logger.info(
        "booking %s updated: range_changed=%s players_changed=%s fee=%s",
        booking.id,
        range_changed,
        players_changed,
        fee.total,
    )
    outcome.fee = fee
    outcome.cancelled = cancelled
    outcome.created = created
    outcome.reallocated = True
    return outcome


async def _cancel(ctx: BookingContext, booking: Booking, reason: str | None) -> BookingOutcome:
    status_from = booking.status
    assert_transition(status_from, BookingStatus.CANCELLED)
    cancelled = await cancel_pending(ctx, booking)
    refund = refund_due(booking.payment_status, booking.paid_with_credit, booking.total_fee)
    booking.set_status(BookingStatus.CANCELLED)
    booking.cancel_reason = reason
    booking.version += 1
    await ctx.bookings.save(booking)
    if refund is not None:
        logger.info("booking %s was paid with credit; refund of %s due", booking.id, refund)
    return BookingOutcome(booking=booking, status_from=status_from, cancelled=cancelled, refund_due=refund)


async def cancel_booking(
    ctx: BookingContext,
    *,
    booking_id: int,
    actor_id: int,
    is_admin: bool = False,
    reason: str | None = None,
) -> BookingOutcome:
    booking = await _load_for_update(ctx, booking_id)
    _check_owner(booking, actor_id, is_admin)
    ensure_editable(booking.status)
    if booking.status == BookingStatus.BLOCKED and not is_admin:
        raise StateError("Administrative blocks are released by an administrator", reason="blocked-booking")
    return await _cancel(ctx, booking, reason)


async def change_status(
    ctx: BookingContext,
    *,
    booking_id: int,
    status: BookingStatus,
    reason: str | None = None,
) -> BookingOutcome:
    if status == BookingStatus.BLOCKED:
        raise ValidationError(
            "Bookings become blocked only through block creation",
            reason="invalid-transition-input",
            detail={"to": str(status)},
        )
    booking = await _load_for_update(ctx, booking_id)
    if status == BookingStatus.CANCELLED:
        return await _cancel(ctx, booking, reason)

    status_from = booking.status
    assert_transition(status_from, status)
    booking.set_status(status)
    booking.version += 1
    await ctx.bookings.save(booking)
    logger.info("booking %s moved %s -> %s", booking.id, status_from, status)
    return BookingOutcome(booking=booking, status_from=status_from)


async def _load_block(ctx: BookingContext, booking_id: int) -> Booking:
    booking = await _load_for_update(ctx, booking_id)
    if booking.status != BookingStatus.BLOCKED:
        raise StateError(
            "Booking is not an administrative block",
            reason="not-a-block",
            detail={"booking_id": booking.id, "status": str(booking.status)},
        )
    return booking


async def create_block(
    ctx: BookingContext,
    *,
    admin_id: int,
    booking_date: date,
    start_hour: int,
    duration: int,
    block_reason: BlockReason,
    block_notes: str | None = None,
) -> BookingOutcome:
    """Hold hours with zero fee and no participants."""
    swept = await sweep_no_shows(ctx)
    end_hour = validate_booking_window(
        booking_date, start_hour, duration, today=ctx.today, hours=ctx.hours, administrative=True
    )
    await ensure_available(ctx, day=booking_date, start_hour=start_hour, end_hour=end_hour)
    try:
        booking = await ctx.bookings.create(
            reserver_id=admin_id,
            booking_date=booking_date,
            start_hour=start_hour,
            duration=duration,
            status=BookingStatus.BLOCKED,
            payment_status=PaymentStatus.NOT_APPLICABLE,
            total_fee=Decimal("0.00"),
            participants=[],
            block_reason=block_reason,
            block_notes=block_notes,
        )
    except IntegrityError as exc:
        raise _slot_taken(exc, booking_date, start_hour, end_hour) from exc
    logger.info("block %s created for %s %d-%d (%s)", booking.id, booking_date, start_hour, end_hour, block_reason)
    return BookingOutcome(booking=booking, swept=swept)


async def update_block(
    ctx: BookingContext,
    *,
    booking_id: int,
    booking_date: date | None = None,
    start_hour: int | None = None,
    duration: int | None = None,
    block_reason: BlockReason | None = None,
    block_notes: str | None = None,
) -> BookingOutcome:
    swept = await sweep_no_shows(ctx)
    booking = await _load_block(ctx, booking_id)
    day = booking_date if booking_date is not None else booking.booking_date
    start = start_hour if start_hour is not None else booking.start_hour
    length = duration if duration is not None else booking.duration

    if (day, start, length) != (booking.booking_date, booking.start_hour, booking.duration):
        end_hour = validate_booking_window(day, start, length, today=ctx.today, hours=ctx.hours, administrative=True)
        await ensure_available(ctx, day=day, start_hour=start, end_hour=end_hour, exclude_booking_id=booking.id)
        booking.booking_date = day
        booking.set_range(start, length)
    if block_reason is not None:
        booking.block_reason = block_reason
    if block_notes is not None:
        booking.block_notes = block_notes
    booking.version += 1
    try:
        await ctx.bookings.save(booking)
    except IntegrityError as exc:
        raise _slot_taken(exc, day, start, start + length) from exc
    return BookingOutcome(booking=booking, status_from=BookingStatus.BLOCKED, swept=swept)


async def release_block(ctx: BookingContext, *, booking_id: int, reason: str | None = None) -> BookingOutcome:
    booking = await _load_block(ctx, booking_id)
    return await _cancel(ctx, booking, reason)
