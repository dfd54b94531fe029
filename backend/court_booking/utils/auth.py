"""Bearer tokens minted by the club's identity service.

This service only verifies them; ``create_access_token`` mirrors the issuer so
local tools and tests can produce compatible tokens.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


@dataclass(frozen=True)
class TokenClaims:
    member_id: int
    issuer: str | None = None


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise ValueError("missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise ValueError("authorization header is not a bearer token")
    return token.strip()


def create_access_token(
    *,
    member_id: int,
    secret: str,
    algorithm: str = "HS256",
    issuer: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, object] = {"sub": str(member_id), "iat": now, "exp": now + (expires_delta or timedelta(minutes=30))}
    if issuer:
        payload["iss"] = issuer
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
    issuer: str | None = None,
) -> TokenClaims:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms), issuer=issuer)
    except InvalidTokenError as exc:  # expired, bad signature, wrong issuer
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        member_id = int(sub)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
    return TokenClaims(member_id=member_id, issuer=payload.get("iss"))
