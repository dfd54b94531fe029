import logging
from datetime import date
from typing import Sequence

from ..domain.availability import (
    AvailabilityResult,
    BookedRange,
    HourAvailability,
    check_range,
    hour_grid,
    raise_for_conflicts,
)
from ..domain.errors import ValidationError
from ..models import Booking
from .context import BookingContext

logger = logging.getLogger(__name__)


def booked_ranges(bookings: Sequence[Booking]) -> list[BookedRange]:
    return [
        BookedRange(booking_id=b.id, start_hour=b.start_hour, end_hour=b.end_hour, status=b.status)
        for b in bookings
    ]


async def sweep_no_shows(ctx: BookingContext) -> list[Booking]:
    """Move pending bookings dated before today to no-show."""
    stale = await ctx.bookings.mark_stale_no_show(ctx.today)
    if stale:
        logger.info("marked %d stale pending booking(s) as no-show before %s", len(stale), ctx.today)
    return stale


async def day_grid(
    ctx: BookingContext,
    *,
    day: date,
    exclude_booking_id: int | None = None,
) -> tuple[list[HourAvailability], list[Booking]]:
    swept = await sweep_no_shows(ctx)
    bookings = await ctx.bookings.list_for_date(day)
    events = await ctx.blocks.list_for_date(day)
    grid = hour_grid(day, ctx.hours, booked_ranges(bookings), events, ctx.closure, exclude_booking_id)
    return grid, swept


async def check_day_range(
    ctx: BookingContext,
    *,
    day: date,
    start_hour: int,
    end_hour: int,
    exclude_booking_id: int | None = None,
) -> AvailabilityResult:
    bookings = await ctx.bookings.list_for_date(day)
    events = await ctx.blocks.list_for_date(day)
    return check_range(
        day,
        start_hour,
        end_hour,
        booked_ranges(bookings),
        events,
        ctx.closure,
        exclude_booking_id=exclude_booking_id,
    )


async def range_check(
    ctx: BookingContext,
    *,
    day: date,
    start_hour: int,
    end_hour: int,
    exclude_booking_id: int | None = None,
) -> tuple[AvailabilityResult, list[Booking]]:
    if not ctx.hours.opening_hour <= start_hour < end_hour <= ctx.hours.closing_hour:
        raise ValidationError(
            f"Range must lie within {ctx.hours.opening_hour}:00-{ctx.hours.closing_hour}:00 and end after it starts",
            reason="out-of-hours",
            detail={"start_hour": start_hour, "end_hour": end_hour},
        )
    swept = await sweep_no_shows(ctx)
    result = await check_day_range(
        ctx, day=day, start_hour=start_hour, end_hour=end_hour, exclude_booking_id=exclude_booking_id
    )
    return result, swept


async def ensure_available(
    ctx: BookingContext,
    *,
    day: date,
    start_hour: int,
    end_hour: int,
    exclude_booking_id: int | None = None,
) -> None:
    result = await check_day_range(
        ctx, day=day, start_hour=start_hour, end_hour=end_hour, exclude_booking_id=exclude_booking_id
    )
    if not result.available:
        logger.info(
            "range %s %d-%d unavailable: hours=%s sources=%s",
            day,
            start_hour,
            end_hour,
            result.conflicting_hours or result.external_hours,
            result.sources,
        )
    raise_for_conflicts(result, start_hour, end_hour)
