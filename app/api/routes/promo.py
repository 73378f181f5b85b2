from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.api.deps import (
    SessionFactory,
    current_user_id,
    get_promo_registry,
    get_promo_service,
    http_error,
    load_admin_status,
    storage_http_error,
)
from app.db.errors import StorageError
from app.db.session import get_session_factory
from app.economy.promo.errors import (
    PromoAlreadyRedeemedError,
    PromoConflictError,
    PromoError,
    PromoInactiveError,
    PromoNotFoundError,
    PromoValidationError,
)
from app.economy.promo.registry import PromoCodeRegistry
from app.economy.promo.service import PromoService
from app.economy.promo.types import CreatedPromoCode, PromoRedemptionRecord

router = APIRouter(prefix="/api/promocode", tags=["promo"])
logger = structlog.get_logger(__name__)

ACTIVATED_MESSAGE = "Promocode activated successfully"
ADMIN_REQUIRED_MESSAGE = "Admin privileges required"

_PROMO_ERROR_STATUS: dict[type[PromoError], int] = {
    PromoValidationError: status.HTTP_400_BAD_REQUEST,
    PromoInactiveError: status.HTTP_400_BAD_REQUEST,
    PromoAlreadyRedeemedError: status.HTTP_400_BAD_REQUEST,
    PromoNotFoundError: status.HTTP_404_NOT_FOUND,
    PromoConflictError: status.HTTP_409_CONFLICT,
}


class PromoCreateRequest(BaseModel):
    name: str | None = None
    keyword: str | None = None
    # Numbers and numeric strings are both accepted; the registry validates.
    quantity: Any = None
    is_active: bool = True
    start_time: str | None = None
    end_time: str | None = None


class PromoCreateResponse(BaseModel):
    keyword: str
    active: bool
    quantity: int
    name: str
    start_time: datetime | None = None
    end_time: datetime | None = None


class PromoActivateRequest(BaseModel):
    promocode: str | None = None


class PromoActivateResponse(BaseModel):
    message: str
    balance: int


class PromoActivationItem(BaseModel):
    promocode_id: int
    keyword: str
    quantity: int
    activated_at: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class PromoHistoryResponse(BaseModel):
    activations: list[PromoActivationItem]


def _promo_http_error(exc: PromoError) -> HTTPException:
    status_code = _PROMO_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return http_error(status_code, str(exc))


def _created_as_response(created: CreatedPromoCode) -> PromoCreateResponse:
    return PromoCreateResponse(
        keyword=created.keyword,
        active=created.active,
        quantity=created.quantity,
        name=created.name,
        start_time=created.start_time,
        end_time=created.end_time,
    )


def _activation_as_item(record: PromoRedemptionRecord) -> PromoActivationItem:
    return PromoActivationItem(
        promocode_id=record.promocode_id,
        keyword=record.keyword,
        quantity=record.quantity,
        activated_at=record.activated_at,
        start_time=record.start_time,
        end_time=record.end_time,
    )


async def _assert_admin(session_factory: SessionFactory, user_id: int) -> None:
    if not await load_admin_status(session_factory, user_id):
        logger.info("promo_create_forbidden", user_id=user_id)
        raise http_error(status.HTTP_403_FORBIDDEN, ADMIN_REQUIRED_MESSAGE)


@router.post("", response_model=PromoCreateResponse, response_model_exclude_none=True)
async def create_promocode(
    payload: PromoCreateRequest,
    user_id: int = Depends(current_user_id),
    session_factory: SessionFactory = Depends(get_session_factory),
    registry: PromoCodeRegistry = Depends(get_promo_registry),
) -> PromoCreateResponse:
    await _assert_admin(session_factory, user_id)
    try:
        created = await registry.create_code(
            name=payload.name,
            keyword=payload.keyword,
            quantity=payload.quantity,
            start_time=payload.start_time,
            end_time=payload.end_time,
            is_active=payload.is_active,
        )
    except PromoError as exc:
        raise _promo_http_error(exc) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return _created_as_response(created)


@router.post("/activate", response_model=PromoActivateResponse)
async def activate_promocode(
    payload: PromoActivateRequest,
    user_id: int = Depends(current_user_id),
    service: PromoService = Depends(get_promo_service),
) -> PromoActivateResponse:
    try:
        result = await service.redeem(user_id=user_id, keyword=payload.promocode)
    except PromoError as exc:
        raise _promo_http_error(exc) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return PromoActivateResponse(message=ACTIVATED_MESSAGE, balance=result.balance)


@router.get("/history", response_model=PromoHistoryResponse, response_model_exclude_none=True)
async def promocode_history(
    user_id: int = Depends(current_user_id),
    service: PromoService = Depends(get_promo_service),
) -> PromoHistoryResponse:
    try:
        records = await service.list_redemptions(user_id=user_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return PromoHistoryResponse(activations=[_activation_as_item(record) for record in records])
