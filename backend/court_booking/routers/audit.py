from typing import Sequence

from ..domain.errors import AllocationInconsistency
from ..models import Booking
from ..usecases.context import BookingOutcome
from ..utils.audit_log import AuditAction, AuditInitiator, emit_audit_log


def record_no_shows(swept: Sequence[Booking]) -> None:
    for stale in swept:
        emit_audit_log(
            action="booking.no_show",
            initiator="system",
            booking_id=stale.id,
            member_id=stale.reserver_id,
            status_from="pending",
            status_to=stale.status,
            version=stale.version,
        )


def record_outcome(
    outcome: BookingOutcome,
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    actor_id: int | None,
    message: str | None = None,
) -> None:
    """Audit a booking mutation and every obligation it touched. Raises AuditLogError on log failure."""
    booking = outcome.booking
    record_no_shows(outcome.swept)
    emit_audit_log(
        action=action,
        initiator=initiator,
        booking_id=booking.id,
        member_id=actor_id,
        status_from=outcome.status_from,
        status_to=booking.status,
        amount=booking.total_fee,
        version=booking.version,
        message=message,
        extra={"reallocated": outcome.reallocated} if outcome.reallocated else None,
    )
    for obligation in outcome.cancelled:
        emit_audit_log(
            action="obligation.cancelled",
            initiator=initiator,
            booking_id=booking.id,
            member_id=obligation.member_id,
            obligation_id=obligation.id,
            status_to=obligation.status,
            amount=obligation.amount,
        )
    for obligation in outcome.created:
        emit_audit_log(
            action="obligation.created",
            initiator=initiator,
            booking_id=booking.id,
            member_id=obligation.member_id,
            obligation_id=obligation.id,
            status_to=obligation.status,
            amount=obligation.amount,
            extra={"due_at": obligation.due_at.isoformat(), "due_policy": str(obligation.due_policy)},
        )
    if outcome.refund_due is not None:
        emit_audit_log(
            action="refund.triggered",
            initiator=initiator,
            booking_id=booking.id,
            member_id=booking.reserver_id,
            amount=outcome.refund_due,
            message="booking paid with credit was cancelled",
        )


def record_inconsistency(exc: AllocationInconsistency, *, initiator: AuditInitiator, actor_id: int | None) -> None:
    emit_audit_log(
        action="allocation.inconsistent",
        initiator=initiator,
        booking_id=exc.detail.get("booking_id"),
        member_id=actor_id,
        message=exc.message,
        extra={"detail": exc.detail},
    )
