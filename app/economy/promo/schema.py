"""Logical promo-code operations over the current or the legacy table layout.

Every call first tries the current layout inside a SAVEPOINT. When PostgreSQL
reports an undefined table or column the savepoint is rolled back and the same
operation runs against the legacy layout. Nothing is cached between calls, so a
database that is half way through a migration keeps working.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.errors import is_schema_mismatch, sqlstate_of
from app.db.repo.promo_repo import CurrentPromoSchema
from app.db.repo.promo_repo_legacy import LegacyPromoSchema
from app.economy.promo.types import (
    SCHEMA_LEGACY,
    NewPromoCode,
    PromoCodeRecord,
    PromoRedemptionRecord,
)

logger = structlog.get_logger(__name__)
T = TypeVar("T")


class PromoSchemaStrategy(Protocol):
    name: str

    async def find_code_by_keyword(
        self, session: AsyncSession, keyword: str
    ) -> PromoCodeRecord | None: ...

    async def has_redemption(
        self, session: AsyncSession, *, promocode_id: int, user_id: int
    ) -> bool: ...

    async def record_redemption(
        self,
        session: AsyncSession,
        *,
        promocode_id: int,
        user_id: int,
        quantity: int,
        activated_at: datetime,
    ) -> None: ...

    async def list_redemptions_for_user(
        self, session: AsyncSession, *, user_id: int
    ) -> list[PromoRedemptionRecord]: ...

    async def insert_code(self, session: AsyncSession, new_code: NewPromoCode) -> PromoCodeRecord: ...


class PromoSchemaAdapter:
    def __init__(
        self,
        current: PromoSchemaStrategy | None = None,
        legacy: PromoSchemaStrategy | None = None,
    ) -> None:
        self._current = current or CurrentPromoSchema()
        self._legacy = legacy or LegacyPromoSchema()

    async def _with_fallback(
        self,
        session: AsyncSession,
        *,
        operation: str,
        call: Callable[[PromoSchemaStrategy], Awaitable[T]],
    ) -> T:
        try:
            async with session.begin_nested():
                return await call(self._current)
        except DBAPIError as exc:
            if not is_schema_mismatch(exc):
                raise
            logger.info("promo_schema_fallback", operation=operation, sqlstate=sqlstate_of(exc))

        async with session.begin_nested():
            return await call(self._legacy)

    def _strategy_for(self, code: PromoCodeRecord) -> PromoSchemaStrategy | None:
        # Ids from the two layouts are unrelated, so a legacy code is only ever
        # paired with legacy activation rows.
        return self._legacy if code.schema == SCHEMA_LEGACY else None

    async def find_code_by_keyword(
        self, session: AsyncSession, keyword: str
    ) -> PromoCodeRecord | None:
        try:
            async with session.begin_nested():
                code = await self._current.find_code_by_keyword(session, keyword)
        except DBAPIError as exc:
            if not is_schema_mismatch(exc):
                raise
            logger.info(
                "promo_schema_fallback",
                operation="find_code_by_keyword",
                sqlstate=sqlstate_of(exc),
            )
            code = None
        if code is not None:
            return code

        try:
            async with session.begin_nested():
                return await self._legacy.find_code_by_keyword(session, keyword)
        except DBAPIError as exc:
            if not is_schema_mismatch(exc):
                raise
            return None

    async def check_prior_redemption(
        self,
        session: AsyncSession,
        *,
        code: PromoCodeRecord,
        user_id: int,
    ) -> bool:
        strategy = self._strategy_for(code)
        if strategy is not None:
            return await strategy.has_redemption(session, promocode_id=code.id, user_id=user_id)
        return await self._with_fallback(
            session,
            operation="check_prior_redemption",
            call=lambda target: target.has_redemption(
                session, promocode_id=code.id, user_id=user_id
            ),
        )

    async def record_redemption(
        self,
        session: AsyncSession,
        *,
        code: PromoCodeRecord,
        user_id: int,
        activated_at: datetime,
    ) -> None:
        strategy = self._strategy_for(code)
        if strategy is not None:
            async with session.begin_nested():
                await strategy.record_redemption(
                    session,
                    promocode_id=code.id,
                    user_id=user_id,
                    quantity=code.quantity,
                    activated_at=activated_at,
                )
            return
        await self._with_fallback(
            session,
            operation="record_redemption",
            call=lambda target: target.record_redemption(
                session,
                promocode_id=code.id,
                user_id=user_id,
                quantity=code.quantity,
                activated_at=activated_at,
            ),
        )

    async def list_redemptions_for_user(
        self, session: AsyncSession, *, user_id: int
    ) -> list[PromoRedemptionRecord]:
        return await self._with_fallback(
            session,
            operation="list_redemptions_for_user",
            call=lambda target: target.list_redemptions_for_user(session, user_id=user_id),
        )

    async def insert_code(self, session: AsyncSession, new_code: NewPromoCode) -> PromoCodeRecord:
        return await self._with_fallback(
            session,
            operation="insert_code",
            call=lambda target: target.insert_code(session, new_code),
        )
