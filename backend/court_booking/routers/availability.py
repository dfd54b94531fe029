from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_context, get_session
from ..schemas import HourAvailabilityRead, RangeCheckRead
from ..usecases import availability as availability_usecase
from .audit import record_no_shows
from .errors import translate_errors

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/{day}", response_model=List[HourAvailabilityRead])
async def day_availability(
    day: date,
    exclude_booking_id: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[HourAvailabilityRead]:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="system", actor_id=None):
            grid, swept = await availability_usecase.day_grid(ctx, day=day, exclude_booking_id=exclude_booking_id)
            record_no_shows(swept)
    return [HourAvailabilityRead.from_domain(entry) for entry in grid]


@router.get("/{day}/range", response_model=RangeCheckRead)
async def range_availability(
    day: date,
    start_hour: int = Query(..., ge=0, le=23),
    end_hour: int = Query(..., ge=1, le=24),
    exclude_booking_id: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
) -> RangeCheckRead:
    ctx = build_context(session)
    async with session.begin():
        with translate_errors(initiator="system", actor_id=None):
            result, swept = await availability_usecase.range_check(
                ctx,
                day=day,
                start_hour=start_hour,
                end_hour=end_hour,
                exclude_booking_id=exclude_booking_id,
            )
            record_no_shows(swept)
    return RangeCheckRead.from_domain(day=day, start_hour=start_hour, end_hour=end_hour, result=result)
