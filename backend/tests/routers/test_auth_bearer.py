from datetime import timedelta
from typing import Any, AsyncIterator

import pytest
from court_booking.config import get_settings
from court_booking.deps import get_current_user_id, get_session, require_admin
from court_booking.utils.auth import create_access_token
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient


class DummySession:
    def __init__(self, role: str | None) -> None:
        self.role = role

    async def __aenter__(self) -> "DummySession":  # pragma: no cover
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:  # pragma: no cover
        return False

    async def scalar(self, *args: Any, **kwargs: Any) -> str | None:
        return self.role

    async def rollback(self) -> None:
        return None


def _make_app(role: str | None) -> TestClient:
    app = FastAPI()

    async def override_get_session() -> AsyncIterator[DummySession]:
        yield DummySession(role=role)

    app.dependency_overrides[get_session] = override_get_session

    @app.get("/protected")
    async def protected(user_id: int = Depends(get_current_user_id)) -> dict[str, int]:
        return {"user_id": user_id}

    @app.get("/admin-only")
    async def admin_only(admin_id: int = Depends(require_admin)) -> dict[str, int]:
        return {"admin_id": admin_id}

    return TestClient(app)


def _token(secret: str, *, expired: bool = False) -> str:
    delta = timedelta(seconds=-1) if expired else timedelta(minutes=30)
    return create_access_token(member_id=123, secret=secret, expires_delta=delta)


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    monkeypatch.delenv("AUTH_ISSUER", raising=False)
    get_settings.cache_clear()


def test_protected_accepts_valid_token() -> None:
    client = _make_app(role="member")
    res = client.get("/protected", headers={"Authorization": f"Bearer {_token('testsecret')}"})
    assert res.status_code == 200
    assert res.json()["user_id"] == 123


def test_protected_rejects_missing_header() -> None:
    res = _make_app(role="member").get("/protected")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate", "").lower().startswith("bearer")


def test_protected_rejects_invalid_and_foreign_tokens() -> None:
    client = _make_app(role="member")
    assert client.get("/protected", headers={"Authorization": "Bearer invalid"}).status_code == 401
    foreign = _token("othersecret")
    assert client.get("/protected", headers={"Authorization": f"Bearer {foreign}"}).status_code == 401


def test_protected_rejects_expired_token() -> None:
    token = _token("testsecret", expired=True)
    res = _make_app(role="member").get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_protected_rejects_unknown_member() -> None:
    token = _token("testsecret")
    res = _make_app(role=None).get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_admin_route_checks_role() -> None:
    headers = {"Authorization": f"Bearer {_token('testsecret')}"}
    assert _make_app(role="member").get("/admin-only", headers=headers).status_code == 403
    res = _make_app(role="admin").get("/admin-only", headers=headers)
    assert res.status_code == 200
    assert res.json() == {"admin_id": 123}
