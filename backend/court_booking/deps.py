import logging
from dataclasses import dataclass
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyExternalBlockSource,
    SqlAlchemyObligationRepository,
    SqlAlchemyRosterRepository,
)
from .models import Member
from .usecases.context import BookingContext
from .utils.auth import bearer_token, decode_access_token
from .utils.time import facility_tz, utc_now_naive

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "superadmin")
BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class CurrentMember:
    member_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_current_member(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> CurrentMember:
    settings = get_settings()
    try:
        token = bearer_token(authorization)
        claims = decode_access_token(
            token,
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            issuer=settings.auth_issuer,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc), headers=BEARER_CHALLENGE
        ) from exc

    stmt = select(Member.role).where(Member.id == claims.member_id, Member.is_approved.is_(True))
    try:
        role = await session.scalar(stmt)
    except ProgrammingError as exc:
        await session.rollback()
        logger.error("member lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="member lookup failed") from exc
    # Close the implicit read transaction so handlers can open their own.
    await session.rollback()
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown or unapproved member", headers=BEARER_CHALLENGE
        )
    return CurrentMember(member_id=claims.member_id, role=str(role))


async def get_current_user_id(member: CurrentMember = Depends(get_current_member)) -> int:
    return member.member_id


async def get_is_admin(member: CurrentMember = Depends(get_current_member)) -> bool:
    return member.is_admin


async def require_admin(member: CurrentMember = Depends(get_current_member)) -> int:
    if not member.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="administrator role required")
    return member.member_id


def build_context(session: AsyncSession, settings: Settings | None = None) -> BookingContext:
    settings = settings or get_settings()
    return BookingContext(
        bookings=SqlAlchemyBookingRepository(session),
        obligations=SqlAlchemyObligationRepository(session),
        roster=SqlAlchemyRosterRepository(session),
        blocks=SqlAlchemyExternalBlockSource(session),
        hours=settings.operating_hours(),
        tariff=settings.tariff(),
        closure=settings.closure_rule(),
        tz=facility_tz(settings.facility_timezone),
        now=utc_now_naive(),
        overdue_grace_days=settings.overdue_grace_days,
        advance_due_days=settings.advance_due_days,
        no_member_policy=settings.no_member_policy,
    )
