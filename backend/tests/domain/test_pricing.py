from decimal import Decimal

from court_booking.domain.players import GuestParticipant, MemberParticipant
from court_booking.domain.pricing import (
    TariffConfig,
    compute_fee,
    compute_legacy_fee,
    legacy_hour_fee,
    round_up,
)

A = MemberParticipant(name="Jon Dela Cruz", member_id=1)
B = MemberParticipant(name="Maria Santos", member_id=2)
G = GuestParticipant(name="Visitor")


def test_round_up_to_ten() -> None:
    assert round_up(Decimal("183.3"), 10) == Decimal("190")
    assert round_up(Decimal("180.0"), 10) == Decimal("180")
    assert round_up(Decimal("0"), 10) == Decimal("0")
    assert round_up(Decimal("180.01"), 10) == Decimal("190")


def test_scenario_peak_then_off_peak_with_guest() -> None:
    tariff = TariffConfig(peak_hours=frozenset({18}), peak_base=150, off_peak_base=100, guest_fee=70)
    fee = compute_fee(18, 20, [A, B, G], tariff)
    assert [h.total for h in fee.hours] == [Decimal("220"), Decimal("170")]
    assert fee.base_total == Decimal("250")
    assert fee.guest_total == Decimal("140")
    assert fee.raw_total == Decimal("390")
    assert fee.total == Decimal("390")
    assert fee.rounding_adjustment == Decimal("0")
    assert fee.guest_count == 1


def test_fee_accumulates_per_hour_across_peak_boundary() -> None:
    tariff = TariffConfig()
    fee = compute_fee(16, 20, [A], tariff)
    assert [h.is_peak for h in fee.hours] == [False, False, True, True]
    assert fee.total == Decimal("500")


def test_zero_participants_still_priced_by_hours() -> None:
    fee = compute_fee(9, 11, [], TariffConfig())
    assert fee.total == Decimal("200")
    assert fee.guest_total == Decimal("0")


def test_rounding_applied_once_to_grand_total() -> None:
    tariff = TariffConfig(peak_hours=frozenset(), off_peak_base=33, guest_fee=0)
    fee = compute_fee(9, 12, [A], tariff)
    assert fee.raw_total == Decimal("99")
    assert fee.total == Decimal("100")
    assert fee.rounding_adjustment == Decimal("1")


def test_compute_fee_is_deterministic() -> None:
    tariff = TariffConfig()
    assert compute_fee(17, 21, [A, G], tariff) == compute_fee(17, 21, [A, G], tariff)


def test_legacy_peak_is_flat_and_off_peak_uses_headcount() -> None:
    tariff = TariffConfig()
    assert legacy_hour_fee(18, 6, tariff) == Decimal("100")
    assert legacy_hour_fee(9, 2, tariff) == Decimal("40")
    # 4 players: ceil(4 * 0.67) = 3 members, 1 non-member.
    assert legacy_hour_fee(9, 4, tariff) == Decimal("110")
    assert compute_legacy_fee(17, 19, 4, tariff) == Decimal("210")
