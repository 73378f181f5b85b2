from __future__ import annotations

from datetime import datetime

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.promocode_activations import PromoCodeActivation
from app.db.models.promocodes import PromoCode
from app.economy.promo.types import (
    SCHEMA_CURRENT,
    NewPromoCode,
    PromoCodeRecord,
    PromoRedemptionRecord,
)


def _as_record(code: PromoCode) -> PromoCodeRecord:
    return PromoCodeRecord(
        id=code.id,
        keyword=code.keyword,
        name=code.name,
        quantity=int(code.quantity),
        start_time=code.start_time,
        end_time=code.end_time,
        created_at=code.created_at,
        enabled=True,
        schema=SCHEMA_CURRENT,
    )


class CurrentPromoSchema:
    """Normalized ``promocode`` / ``promocode_activation`` tables."""

    name = SCHEMA_CURRENT

    async def find_code_by_keyword(
        self, session: AsyncSession, keyword: str
    ) -> PromoCodeRecord | None:
        stmt = select(PromoCode).where(PromoCode.keyword == keyword)
        result = await session.execute(stmt)
        code = result.scalar_one_or_none()
        return _as_record(code) if code is not None else None

    async def has_redemption(
        self,
        session: AsyncSession,
        *,
        promocode_id: int,
        user_id: int,
    ) -> bool:
        stmt = (
            select(PromoCodeActivation.id)
            .where(
                PromoCodeActivation.promocode_id == promocode_id,
                PromoCodeActivation.user_id == user_id,
            )
            .limit(1)
        )
        return (await session.scalar(stmt)) is not None

    async def record_redemption(
        self,
        session: AsyncSession,
        *,
        promocode_id: int,
        user_id: int,
        quantity: int,
        activated_at: datetime,
    ) -> None:
        stmt = insert(PromoCodeActivation).values(
            promocode_id=promocode_id,
            user_id=user_id,
            enable_time=activated_at,
            quantity=quantity,
        )
        await session.execute(stmt)

    async def list_redemptions_for_user(
        self, session: AsyncSession, *, user_id: int
    ) -> list[PromoRedemptionRecord]:
        stmt = (
            select(
                PromoCodeActivation.promocode_id,
                PromoCode.keyword,
                PromoCode.quantity,
                PromoCodeActivation.enable_time,
                PromoCode.start_time,
                PromoCode.end_time,
            )
            .join(PromoCode, PromoCode.id == PromoCodeActivation.promocode_id)
            .where(PromoCodeActivation.user_id == user_id)
            .order_by(PromoCodeActivation.enable_time.desc(), PromoCodeActivation.id.desc())
        )
        result = await session.execute(stmt)
        return [
            PromoRedemptionRecord(
                promocode_id=int(row.promocode_id),
                keyword=row.keyword,
                quantity=int(row.quantity),
                activated_at=row.enable_time,
                start_time=row.start_time,
                end_time=row.end_time,
            )
            for row in result.all()
        ]

    async def insert_code(self, session: AsyncSession, new_code: NewPromoCode) -> PromoCodeRecord:
        stmt = (
            insert(PromoCode)
            .values(
                name=new_code.name,
                keyword=new_code.keyword,
                start_time=new_code.start_time,
                end_time=new_code.end_time,
                quantity=new_code.quantity,
            )
            .returning(PromoCode.id, PromoCode.created_at)
        )
        row = (await session.execute(stmt)).one()
        return PromoCodeRecord(
            id=int(row.id),
            keyword=new_code.keyword,
            name=new_code.name,
            quantity=new_code.quantity,
            start_time=new_code.start_time,
            end_time=new_code.end_time,
            created_at=row.created_at,
            enabled=True,
            schema=SCHEMA_CURRENT,
        )
