from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Sequence
from zoneinfo import ZoneInfo

from ..models import DueDatePolicy
from ..utils.time import end_of_day_utc, to_utc_naive
from .errors import AllocationInconsistency, ValidationError
from .players import MemberParticipant, Participant, members_of
from .pricing import FeeBreakdown

CENT = Decimal("0.01")


class NoMemberPolicy(StrEnum):
    WAIVE = "waive"
    REJECT = "reject"


@dataclass(frozen=True)
class AllocationLine:
    member_id: int
    name: str
    amount: Decimal
    member_share: Decimal
    guest_fees: Decimal
    is_reserver: bool


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_due_date(
    policy: DueDatePolicy,
    booking_date: date,
    *,
    now: datetime,
    tz: ZoneInfo,
    advance_days: int = 7,
) -> datetime:
    """Due moment as UTC-naive.

    POST_PLAY: end of the day after play. EARLIEST_OF_WEEK_OR_DAY_BEFORE: end
    of today for same-day play, otherwise the earlier of ``now + advance_days``
    and the start of the day before play.
    """
    if policy == DueDatePolicy.POST_PLAY:
        return end_of_day_utc(booking_date + timedelta(days=1), tz)

    local_now = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=timezone.utc).astimezone(tz)
    if booking_date <= local_now.date():
        return end_of_day_utc(local_now.date(), tz)
    week_out = local_now + timedelta(days=advance_days)
    day_before = datetime.combine(booking_date - timedelta(days=1), time(0, 0), tzinfo=tz)
    return to_utc_naive(min(week_out, day_before))


def _distinct_members(participants: Sequence[Participant]) -> list[MemberParticipant]:
    seen: set[int] = set()
    members: list[MemberParticipant] = []
    for member in members_of(participants):
        if member.member_id not in seen:
            seen.add(member.member_id)
            members.append(member)
    return members


def allocate(
    fee: FeeBreakdown,
    participants: Sequence[Participant],
    reserver_id: int,
    policy: NoMemberPolicy = NoMemberPolicy.WAIVE,
    total_fee: Decimal | None = None,
) -> list[AllocationLine]:
    """Split the base fee evenly across members; one member absorbs the rest.

    Every member owes an even share of the base fee. The absorbing member owes
    ``total_fee`` (``fee.total`` unless a booked total is supplied) minus the
    other members' shares, which covers guest surcharges and the rounding-up
    delta. The reserver absorbs; when the reserver is not playing, the first
    listed member does. Guests never receive a line.
    """
    members = _distinct_members(participants)
    if not members:
        if policy == NoMemberPolicy.REJECT:
            raise ValidationError(
                "At least one club member must play to book the court",
                reason="no-members",
                detail={"participants": [p.name for p in participants]},
            )
        return []

    total = quantize(fee.total if total_fee is None else total_fee)
    share = quantize(fee.base_total / len(members))
    absorber_id = reserver_id if any(m.member_id == reserver_id for m in members) else members[0].member_id
    others_total = share * (len(members) - 1)
    remainder = total - others_total
    if remainder < 0:
        raise ValidationError(
            "Booking fee is lower than the other members' shares",
            reason="fee-below-shares",
            detail={"total_fee": str(total), "other_shares": str(others_total)},
        )

    lines: list[AllocationLine] = []
    for member in members:
        if member.member_id == absorber_id:
            member_share = min(share, remainder)
            line = AllocationLine(
                member_id=member.member_id,
                name=member.name,
                amount=remainder,
                member_share=member_share,
                guest_fees=min(quantize(fee.guest_total), remainder - member_share),
                is_reserver=member.member_id == reserver_id,
            )
        else:
            line = AllocationLine(
                member_id=member.member_id,
                name=member.name,
                amount=share,
                member_share=share,
                guest_fees=Decimal("0.00"),
                is_reserver=member.member_id == reserver_id,
            )
        lines.append(line)
    return lines


def verify_allocation(lines: Sequence[AllocationLine], total_fee: Decimal) -> None:
    """Raise if the lines drift from ``total_fee`` by more than a cent per line."""
    if not lines:
        return
    allocated = sum((line.amount for line in lines), Decimal("0"))
    tolerance = CENT * len(lines)
    if abs(allocated - total_fee) > tolerance:
        raise AllocationInconsistency(
            "Obligation amounts do not add up to the booking fee",
            detail={
                "expected": str(total_fee),
                "allocated": str(allocated),
                "tolerance": str(tolerance),
            },
        )


def describe(is_reserver: bool, booking_date: date, start_hour: int, end_hour: int) -> str:
    tag = " (Reserver)" if is_reserver else ""
    return f"Court reservation{tag} - {booking_date.isoformat()} {start_hour}:00-{end_hour}:00"
