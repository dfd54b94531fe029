from datetime import timedelta
from typing import Any

import pytest
from court_booking.config import Settings, get_settings
from court_booking.deps import get_current_member, require_admin
from court_booking.utils.auth import create_access_token
from fastapi import HTTPException
from sqlalchemy.exc import ProgrammingError


class DummySession:
    def __init__(self, role: str | None | Exception) -> None:
        self.role = role
        self.rollbacks = 0

    async def __aenter__(self) -> "DummySession":  # pragma: no cover
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:  # pragma: no cover
        return False

    async def scalar(self, *args: Any, **kwargs: Any) -> str | None:
        if isinstance(self.role, Exception):
            raise self.role
        return self.role

    async def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    monkeypatch.delenv("AUTH_ISSUER", raising=False)
    get_settings.cache_clear()


def _token(member_id: int = 123, **kwargs: Any) -> str:
    settings = Settings(auth_secret="testsecret")
    return create_access_token(
        member_id=member_id, secret=settings.auth_secret, algorithm=settings.auth_algorithm, **kwargs
    )


@pytest.mark.asyncio
async def test_valid_token_resolves_member_and_role() -> None:
    session = DummySession(role="member")
    member = await get_current_member(authorization=f"Bearer {_token()}", session=session)  # type: ignore[arg-type]
    assert member.member_id == 123
    assert not member.is_admin
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_missing_header_is_401_with_challenge() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_member(authorization=None, session=DummySession(role="member"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_expired_token_is_401() -> None:
    token = _token(expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_member(authorization=f"Bearer {token}", session=DummySession(role="member"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_wrong_issuer_is_401(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_ISSUER", "club-identity")
    get_settings.cache_clear()
    token = _token(issuer="someone-else")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_member(authorization=f"Bearer {token}", session=DummySession(role="member"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_unknown_or_unapproved_member_is_401() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_member(authorization=f"Bearer {_token(99)}", session=DummySession(role=None))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_missing_members_table_is_500() -> None:
    session = DummySession(role=ProgrammingError("missing", None, Exception("cause")))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_member(authorization=f"Bearer {_token()}", session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 500
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_require_admin() -> None:
    admin = await get_current_member(authorization=f"Bearer {_token(7)}", session=DummySession(role="superadmin"))  # type: ignore[arg-type]
    assert await require_admin(member=admin) == 7

    member = await get_current_member(authorization=f"Bearer {_token(8)}", session=DummySession(role="member"))  # type: ignore[arg-type]
    with pytest.raises(HTTPException) as excinfo:
        await require_admin(member=member)
    assert excinfo.value.status_code == 403
