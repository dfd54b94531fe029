from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_context, get_current_user_id, get_is_admin, get_session
from ..schemas import BookingCancel, BookingCreate, BookingRead, BookingUpdate, ObligationRead, OverdueItemRead
from ..usecases import bookings as booking_usecase
from ..usecases.context import BookingOutcome
from .audit import record_outcome
from .errors import translate_errors

router = APIRouter(prefix="", tags=["bookings"])


def _read(outcome: BookingOutcome, obligation_count: int | None = None) -> BookingRead:
    return BookingRead.from_db(
        booking=outcome.booking,
        obligation_count=len(outcome.created) if obligation_count is None else obligation_count,
        refund_due=outcome.refund_due,
    )


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="member", actor_id=user_id):
            outcome = await booking_usecase.create_booking(
                ctx,
                reserver_id=user_id,
                booking_date=payload.date,
                start_hour=payload.start_hour,
                duration=payload.duration,
                participant_names=payload.participant_names,
                requested_total_fee=payload.requested_total_fee,
            )
            record_outcome(outcome, action="booking.created", initiator="member", actor_id=user_id)
    return _read(outcome)


@router.get("/bookings", response_model=List[BookingRead])
async def list_bookings(
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    _: int = Depends(get_current_user_id),
) -> list[BookingRead]:
    ctx = build_context(session)
    bookings = await booking_usecase.list_bookings(ctx, day=day)
    return [BookingRead.from_db(booking=b, obligation_count=0) for b in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    ctx = build_context(session)
    with translate_errors(initiator="member", actor_id=user_id):
        booking, obligations = await booking_usecase.get_booking(ctx, booking_id=booking_id)
    active = booking_usecase.active_obligations(obligations)
    return BookingRead.from_db(
        booking=booking,
        obligation_count=len(active),
        obligations=[ObligationRead.from_db(o, tz=ctx.tz) for o in obligations],
    )


@router.patch("/bookings/{booking_id}", response_model=BookingRead)
async def update_booking(
    payload: BookingUpdate,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="member", actor_id=user_id):
            outcome = await booking_usecase.update_booking(
                ctx,
                booking_id=booking_id,
                actor_id=user_id,
                is_admin=is_admin,
                booking_date=payload.date,
                start_hour=payload.start_hour,
                duration=payload.duration,
                participant_names=payload.participant_names,
                version=payload.version,
            )
            record_outcome(
                outcome,
                action="booking.updated",
                initiator="admin" if is_admin else "member",
                actor_id=user_id,
            )
            obligations = booking_usecase.active_obligations(await ctx.obligations.list_for_booking(outcome.booking.id))
    return _read(outcome, obligation_count=len(obligations))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    payload: BookingCancel,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="member", actor_id=user_id):
            outcome = await booking_usecase.cancel_booking(
                ctx,
                booking_id=booking_id,
                actor_id=user_id,
                is_admin=is_admin,
                reason=payload.reason,
            )
            record_outcome(
                outcome,
                action="booking.cancelled",
                initiator="admin" if is_admin else "member",
                actor_id=user_id,
                message=payload.reason,
            )
    return _read(outcome, obligation_count=0)


@router.get("/me/overdue", response_model=List[OverdueItemRead])
async def list_my_overdue(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[OverdueItemRead]:
    ctx = build_context(session)
    items = await booking_usecase.list_overdue(ctx, member_id=user_id)
    return [OverdueItemRead.from_domain(item, tz=ctx.tz) for item in items]
