from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_context, get_current_user_id, get_session
from ..schemas import FeeQuoteRead, FeeQuoteRequest
from ..usecases import fees as fee_usecase
from .errors import translate_errors

router = APIRouter(prefix="/fees", tags=["fees"])


@router.post("/quote", response_model=FeeQuoteRead)
async def quote_fee(
    payload: FeeQuoteRequest,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> FeeQuoteRead:
    ctx = build_context(session)
    with translate_errors(initiator="member", actor_id=user_id):
        quote = await fee_usecase.quote_fee(
            ctx,
            start_hour=payload.start_hour,
            duration=payload.duration,
            players=payload.players,
            reserver_id=user_id,
            legacy=payload.legacy,
        )
    return FeeQuoteRead.from_domain(quote, player_count=len(payload.players))
