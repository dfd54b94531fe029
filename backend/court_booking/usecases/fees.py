from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Sequence, Union

from ..domain.allocation import AllocationLine, allocate
from ..domain.players import MatchStrategy, Participant, members_of, normalize_players
from ..domain.pricing import FeeBreakdown, compute_fee, compute_legacy_fee
from ..domain.services import validate_booking_window
from .context import BookingContext

PlayerInput = Union[str, Mapping[str, Any]]


@dataclass
class FeeQuote:
    start_hour: int
    end_hour: int
    total: Decimal
    legacy: bool
    participants: list[Participant] = field(default_factory=list)
    breakdown: FeeBreakdown | None = None
    split: list[AllocationLine] = field(default_factory=list)


async def quote_fee(
    ctx: BookingContext,
    *,
    start_hour: int,
    duration: int,
    players: Sequence[PlayerInput],
    reserver_id: int,
    legacy: bool = False,
) -> FeeQuote:
    """Price a prospective range and preview how it would be split.

    Players may be plain names or stored ``{name, isMember, userId}`` rows;
    plain names are resolved with the lenient fee-splitting strategy. Legacy
    mode prices by headcount and has no per-member split.
    """
    end_hour = validate_booking_window(ctx.today, start_hour, duration, today=ctx.today, hours=ctx.hours)
    if legacy:
        return FeeQuote(
            start_hour=start_hour,
            end_hour=end_hour,
            total=compute_legacy_fee(start_hour, end_hour, len(players), ctx.tariff),
            legacy=True,
        )

    participants = normalize_players(players, await ctx.roster.list_approved(), MatchStrategy.LENIENT)
    breakdown = compute_fee(start_hour, end_hour, participants, ctx.tariff)
    # Previews never reject: an all-guest list simply has no split.
    split = allocate(breakdown, participants, reserver_id) if members_of(participants) else []
    return FeeQuote(
        start_hour=start_hour,
        end_hour=end_hour,
        total=breakdown.total,
        legacy=False,
        participants=participants,
        breakdown=breakdown,
        split=split,
    )


def fee_per_player(total: Decimal, player_count: int) -> Decimal:
    if player_count <= 0:
        return Decimal("0.00")
    return (total / player_count).quantize(Decimal("0.01"))
