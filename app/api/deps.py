from __future__ import annotations

from datetime import timedelta
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.db.errors import StorageError
from app.db.repo.users_repo import AdminStatusUnknownError, UsersRepo
from app.db.session import get_session_factory
from app.economy.balance.service import BalanceLedger
from app.economy.promo.registry import PromoCodeRegistry
from app.economy.promo.service import PromoService
from app.services.login_codes import LoginCodeService
from app.services.tokens import TokenError, extract_token, parse_token

logger = structlog.get_logger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def error_body(message: str, *, details: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def http_error(status_code: int, message: str, *, details: str | None = None) -> HTTPException:
    return HTTPException(status_code=status_code, detail=error_body(message, details=details))


def storage_http_error(exc: StorageError) -> HTTPException:
    return http_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        exc.message,
        details=exc.details or str(exc),
    )


def token_http_error(exc: TokenError) -> HTTPException:
    return http_error(status.HTTP_401_UNAUTHORIZED, exc.message, details=str(exc))


def current_user_id(request: Request) -> int:
    try:
        token = extract_token(request.headers, request.query_params)
        return parse_token(token).user_id
    except TokenError as exc:
        raise token_http_error(exc) from exc


def get_promo_service(session_factory: SessionFactory = Depends(get_session_factory)) -> PromoService:
    return PromoService(session_factory)


def get_promo_registry(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> PromoCodeRegistry:
    window = timedelta(days=get_settings().promo_default_ttl_days)
    return PromoCodeRegistry(session_factory, default_window=window)


def get_balance_ledger(session_factory: SessionFactory = Depends(get_session_factory)) -> BalanceLedger:
    return BalanceLedger(session_factory)


def get_login_code_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> LoginCodeService:
    return LoginCodeService(session_factory)


async def load_admin_status(session_factory: SessionFactory, user_id: int) -> bool:
    try:
        async with session_factory() as session:
            return await UsersRepo.is_admin(session, user_id)
    except (AdminStatusUnknownError, SQLAlchemyError, OSError) as exc:
        logger.warning("admin_status_unknown", user_id=user_id, error=str(exc))
        raise http_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to verify admin status",
            details=str(exc),
        ) from exc
