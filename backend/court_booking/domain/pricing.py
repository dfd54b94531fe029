from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Sequence

from .players import Participant, guest_count

# Share of a headcount assumed to be members when nothing is classified.
LEGACY_MEMBER_RATIO = 0.67
LEGACY_SMALL_GROUP = 2


@dataclass(frozen=True)
class TariffConfig:
    peak_hours: frozenset[int] = frozenset({5, 18, 19, 20, 21})
    peak_base: int = 150
    off_peak_base: int = 100
    guest_fee: int = 70
    rounding_unit: int = 10
    legacy_peak_fee: int = 100
    legacy_member_fee: int = 20
    legacy_non_member_fee: int = 50

    def is_peak(self, hour: int) -> bool:
        return hour in self.peak_hours


@dataclass(frozen=True)
class HourFee:
    hour: int
    is_peak: bool
    base: Decimal
    guest_surcharge: Decimal

    @property
    def total(self) -> Decimal:
        return self.base + self.guest_surcharge


@dataclass(frozen=True)
class FeeBreakdown:
    hours: list[HourFee] = field(default_factory=list)
    guest_count: int = 0
    total: Decimal = Decimal("0")

    @property
    def base_total(self) -> Decimal:
        return sum((h.base for h in self.hours), Decimal("0"))

    @property
    def guest_total(self) -> Decimal:
        return sum((h.guest_surcharge for h in self.hours), Decimal("0"))

    @property
    def raw_total(self) -> Decimal:
        return self.base_total + self.guest_total

    @property
    def rounding_adjustment(self) -> Decimal:
        return self.total - self.raw_total


def round_up(amount: Decimal, unit: int) -> Decimal:
    """Round up to the next multiple of ``unit`` (183.3 -> 190, 180 -> 180)."""
    step = Decimal(unit)
    return (amount / step).to_integral_value(rounding=ROUND_CEILING) * step


def compute_fee(start_hour: int, end_hour: int, participants: Sequence[Participant], tariff: TariffConfig) -> FeeBreakdown:
    """Hour-by-hour base fee plus a surcharge per guest per hour, rounded once at the end."""
    guests = guest_count(participants)
    surcharge = Decimal(guests * tariff.guest_fee)
    lines = [
        HourFee(
            hour=hour,
            is_peak=tariff.is_peak(hour),
            base=Decimal(tariff.peak_base if tariff.is_peak(hour) else tariff.off_peak_base),
            guest_surcharge=surcharge,
        )
        for hour in range(start_hour, end_hour)
    ]
    raw = sum((line.total for line in lines), Decimal("0"))
    return FeeBreakdown(hours=lines, guest_count=guests, total=round_up(raw, tariff.rounding_unit))


def legacy_hour_fee(hour: int, player_count: int, tariff: TariffConfig) -> Decimal:
    if tariff.is_peak(hour):
        return Decimal(tariff.legacy_peak_fee)
    if player_count <= LEGACY_SMALL_GROUP:
        return Decimal(player_count * tariff.legacy_member_fee)
    # Approximation only: unclassified headcounts are split 2/3 members, 1/3 guests.
    members = math.ceil(player_count * LEGACY_MEMBER_RATIO)
    non_members = player_count - members
    return Decimal(members * tariff.legacy_member_fee + non_members * tariff.legacy_non_member_fee)


def compute_legacy_fee(start_hour: int, end_hour: int, player_count: int, tariff: TariffConfig) -> Decimal:
    raw = sum((legacy_hour_fee(hour, player_count, tariff) for hour in range(start_hour, end_hour)), Decimal("0"))
    return round_up(raw, tariff.rounding_unit)
