from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.errors import UNDEFINED_COLUMN, sqlstate_of
from app.economy.promo.codes import normalize_stored_quantity
from app.economy.promo.types import (
    SCHEMA_LEGACY,
    NewPromoCode,
    PromoCodeRecord,
    PromoRedemptionRecord,
)

# Old deployments named the key column either ``promocode_id`` or ``id`` and the
# flag either ``is_active`` or ``active``; variants are tried in order.
FIND_CODE_VARIANTS = (
    text(
        "SELECT promocode_id AS id, keyword, quantity, is_active AS enabled "
        "FROM promocodes WHERE keyword = :keyword"
    ),
    text("SELECT id, keyword, quantity, active AS enabled FROM promocodes WHERE keyword = :keyword"),
)
HAS_REDEMPTION = text(
    "SELECT 1 FROM promocode_activations WHERE promocode_id = :promocode_id AND user_id = :user_id"
)
RECORD_REDEMPTION = text(
    "INSERT INTO promocode_activations (promocode_id, user_id, activated_at) "
    "VALUES (:promocode_id, :user_id, :activated_at)"
)
LIST_REDEMPTIONS_VARIANTS = (
    text(
        "SELECT pa.promocode_id, p.keyword, p.quantity, pa.activated_at "
        "FROM promocode_activations pa "
        "JOIN promocodes p ON p.promocode_id = pa.promocode_id "
        "WHERE pa.user_id = :user_id ORDER BY pa.activated_at DESC"
    ),
    text(
        "SELECT pa.promocode_id, p.keyword, p.quantity, pa.activated_at "
        "FROM promocode_activations pa "
        "JOIN promocodes p ON p.id = pa.promocode_id "
        "WHERE pa.user_id = :user_id ORDER BY pa.activated_at DESC"
    ),
)
INSERT_CODE_VARIANTS = (
    text(
        "INSERT INTO promocodes (keyword, quantity, is_active, created_at) "
        "VALUES (:keyword, :quantity, :is_active, now()) RETURNING *"
    ),
    text(
        "INSERT INTO promocodes (keyword, quantity, is_active) "
        "VALUES (:keyword, :quantity, :is_active) RETURNING *"
    ),
    text(
        "INSERT INTO promocodes (keyword, quantity, active) "
        "VALUES (:keyword, :quantity, :is_active) RETURNING *"
    ),
)


async def _execute_first_compatible(
    session: AsyncSession,
    statements: Sequence[TextClause],
    params: dict[str, Any],
) -> list[Any]:
    for index, stmt in enumerate(statements):
        is_last = index == len(statements) - 1
        try:
            async with session.begin_nested():
                result: Result[Any] = await session.execute(stmt, params)
                return list(result.all())
        except DBAPIError as exc:
            if is_last or sqlstate_of(exc) != UNDEFINED_COLUMN:
                raise
    return []


class LegacyPromoSchema:
    """Flat ``promocodes`` / ``promocode_activations`` tables of old deployments."""

    name = SCHEMA_LEGACY

    async def find_code_by_keyword(
        self, session: AsyncSession, keyword: str
    ) -> PromoCodeRecord | None:
        rows = await _execute_first_compatible(session, FIND_CODE_VARIANTS, {"keyword": keyword})
        if not rows:
            return None
        row = rows[0]
        return PromoCodeRecord(
            id=int(row.id),
            keyword=row.keyword,
            quantity=normalize_stored_quantity(row.quantity),
            enabled=bool(row.enabled),
            schema=SCHEMA_LEGACY,
        )

    async def has_redemption(
        self,
        session: AsyncSession,
        *,
        promocode_id: int,
        user_id: int,
    ) -> bool:
        result = await session.execute(
            HAS_REDEMPTION,
            {"promocode_id": promocode_id, "user_id": user_id},
        )
        return result.first() is not None

    async def record_redemption(
        self,
        session: AsyncSession,
        *,
        promocode_id: int,
        user_id: int,
        quantity: int,
        activated_at: datetime,
    ) -> None:
        # The legacy activation table has no quantity column.
        del quantity
        await session.execute(
            RECORD_REDEMPTION,
            {"promocode_id": promocode_id, "user_id": user_id, "activated_at": activated_at},
        )

    async def list_redemptions_for_user(
        self, session: AsyncSession, *, user_id: int
    ) -> list[PromoRedemptionRecord]:
        rows = await _execute_first_compatible(
            session,
            LIST_REDEMPTIONS_VARIANTS,
            {"user_id": user_id},
        )
        return [
            PromoRedemptionRecord(
                promocode_id=int(row.promocode_id),
                keyword=row.keyword,
                quantity=normalize_stored_quantity(row.quantity),
                activated_at=row.activated_at,
            )
            for row in rows
        ]

    async def insert_code(self, session: AsyncSession, new_code: NewPromoCode) -> PromoCodeRecord:
        rows = await _execute_first_compatible(
            session,
            INSERT_CODE_VARIANTS,
            {
                "keyword": new_code.keyword,
                "quantity": new_code.quantity,
                "is_active": new_code.is_active,
            },
        )
        stored = rows[0]._mapping
        return PromoCodeRecord(
            id=int(stored.get("promocode_id", stored.get("id"))),
            keyword=new_code.keyword,
            name=new_code.name,
            quantity=new_code.quantity,
            created_at=stored.get("created_at"),
            enabled=new_code.is_active,
            schema=SCHEMA_LEGACY,
        )
