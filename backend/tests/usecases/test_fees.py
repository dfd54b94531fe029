from decimal import Decimal

import pytest
from court_booking.domain.errors import ValidationError
from court_booking.usecases.fees import fee_per_player, quote_fee


@pytest.mark.asyncio
async def test_quote_resolves_names_leniently_and_previews_split(make_ctx) -> None:
    ctx = make_ctx()
    quote = await quote_fee(
        ctx,
        start_hour=18,
        duration=2,
        players=["jondcruz", {"name": "Walk In", "isMember": False}],
        reserver_id=1,
    )
    assert not quote.legacy
    assert quote.end_hour == 20
    assert [p.member_id for p in quote.participants] == [1, None]
    assert quote.total == Decimal("440")
    assert quote.breakdown is not None and quote.breakdown.guest_total == Decimal("140")
    [line] = quote.split
    assert (line.member_id, line.amount, line.is_reserver) == (1, Decimal("440.00"), True)


@pytest.mark.asyncio
async def test_quote_for_guests_only_has_no_split(make_ctx) -> None:
    quote = await quote_fee(make_ctx(), start_hour=9, duration=1, players=["Visitor"], reserver_id=1)
    assert quote.total == Decimal("170")
    assert quote.split == []


@pytest.mark.asyncio
async def test_legacy_quote_prices_by_headcount(make_ctx) -> None:
    quote = await quote_fee(
        make_ctx(), start_hour=17, duration=2, players=["a", "b", "c", "d"], reserver_id=1, legacy=True
    )
    assert quote.legacy
    assert quote.total == Decimal("210")
    assert quote.split == [] and quote.breakdown is None


@pytest.mark.asyncio
async def test_quote_rejects_ranges_past_closing(make_ctx) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await quote_fee(make_ctx(), start_hour=21, duration=2, players=["Ana Reyes"], reserver_id=3)
    assert excinfo.value.reason == "out-of-hours"


def test_fee_per_player() -> None:
    assert fee_per_player(Decimal("390"), 3) == Decimal("130.00")
    assert fee_per_player(Decimal("100"), 3) == Decimal("33.33")
    assert fee_per_player(Decimal("100"), 0) == Decimal("0.00")
