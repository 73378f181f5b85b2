from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.core.config import get_settings

JWT_ALGORITHM = "HS256"
USER_ID_CLAIM = "userid"
BEARER_PREFIX = "bearer"


class TokenError(Exception):
    message = "Unauthorized"


class TokenMissingError(TokenError):
    message = "Missing authorization token"


class TokenInvalidError(TokenError):
    message = "Unauthorized"


class TokenSignatureError(TokenInvalidError):
    message = "Invalid token signature"


class TokenExpiredError(TokenError):
    message = "Token expired"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    user_id: int
    issued_at: datetime
    expires_at: datetime


def issue_token(user_id: int, *, now_utc: datetime | None = None) -> str:
    settings = get_settings()
    now_utc = now_utc or datetime.now(timezone.utc)
    payload = {
        USER_ID_CLAIM: user_id,
        "iat": now_utc,
        "exp": now_utc + timedelta(hours=settings.jwt_ttl_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def parse_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            get_settings().jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", USER_ID_CLAIM]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError(str(exc)) from exc
    except jwt.InvalidSignatureError as exc:
        raise TokenSignatureError(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalidError(str(exc)) from exc

    user_id = payload.get(USER_ID_CLAIM)
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise TokenInvalidError("invalid token claims")

    return TokenClaims(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(payload.get("iat", 0), tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def extract_token(headers: Mapping[str, str], query: Mapping[str, str]) -> str:
    """Bearer header first, then ``X-Auth-Token``, then the ``token`` query parameter."""
    authorization = headers.get("Authorization") or headers.get("authorization")
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == BEARER_PREFIX and value.strip():
            return value.strip()

    header_token = headers.get("X-Auth-Token") or headers.get("x-auth-token")
    if header_token:
        return header_token

    query_token = query.get("token")
    if query_token:
        return query_token

    raise TokenMissingError("authorization token is required")
