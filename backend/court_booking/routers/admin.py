from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_context, get_session, require_admin
from ..schemas import (
    BlockCreate,
    BlockUpdate,
    BookingCancel,
    BookingRead,
    ManualObligationCreate,
    ObligationRead,
    StatusChange,
)
from ..usecases import bookings as booking_usecase
from ..usecases import obligations as obligation_usecase
from ..usecases.context import BookingOutcome
from .audit import record_outcome
from .errors import translate_errors

router = APIRouter(prefix="/admin", tags=["admin"])


def _read(outcome: BookingOutcome) -> BookingRead:
    return BookingRead.from_db(booking=outcome.booking, obligation_count=0, refund_due=outcome.refund_due)


@router.post("/blocks", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_block(
    payload: BlockCreate,
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            outcome = await booking_usecase.create_block(
                ctx,
                admin_id=admin_id,
                booking_date=payload.date,
                start_hour=payload.start_hour,
                duration=payload.duration,
                block_reason=payload.block_reason,
                block_notes=payload.block_notes,
            )
            record_outcome(outcome, action="booking.blocked", initiator="admin", actor_id=admin_id)
    return _read(outcome)


@router.patch("/blocks/{booking_id}", response_model=BookingRead)
async def update_block(
    payload: BlockUpdate,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            outcome = await booking_usecase.update_block(
                ctx,
                booking_id=booking_id,
                booking_date=payload.date,
                start_hour=payload.start_hour,
                duration=payload.duration,
                block_reason=payload.block_reason,
                block_notes=payload.block_notes,
            )
            record_outcome(outcome, action="booking.updated", initiator="admin", actor_id=admin_id)
    return _read(outcome)


@router.delete("/blocks/{booking_id}", response_model=BookingRead)
async def release_block(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            outcome = await booking_usecase.release_block(ctx, booking_id=booking_id, reason="block released")
            record_outcome(outcome, action="booking.cancelled", initiator="admin", actor_id=admin_id)
    return _read(outcome)


@router.post("/bookings/{booking_id}/status", response_model=BookingRead)
async def change_status(
    payload: StatusChange,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            outcome = await booking_usecase.change_status(
                ctx,
                booking_id=booking_id,
                status=payload.status,
                reason=payload.reason,
            )
            record_outcome(
                outcome,
                action="booking.status_changed",
                initiator="admin",
                actor_id=admin_id,
                message=payload.reason,
            )
    return _read(outcome)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_any_booking(
    payload: BookingCancel,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> BookingRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            outcome = await booking_usecase.cancel_booking(
                ctx,
                booking_id=booking_id,
                actor_id=admin_id,
                is_admin=True,
                reason=payload.reason,
            )
            record_outcome(
                outcome,
                action="booking.cancelled",
                initiator="admin",
                actor_id=admin_id,
                message=payload.reason,
            )
    return _read(outcome)


@router.post(
    "/bookings/{booking_id}/obligations",
    response_model=ObligationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_manual_obligation(
    payload: ManualObligationCreate,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(require_admin),
) -> ObligationRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="admin", actor_id=admin_id):
            obligation, booking = await obligation_usecase.create_manual_obligation(
                ctx,
                booking_id=booking_id,
                member_id=payload.member_id,
                amount=payload.amount,
                description=payload.description,
            )
            record_outcome(
                BookingOutcome(booking=booking, status_from=booking.status, created=[obligation]),
                action="booking.updated",
                initiator="admin",
                actor_id=admin_id,
                message="manual obligation added",
            )
    return ObligationRead.from_db(obligation, tz=ctx.tz)
