from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.balance import Balance


class BalanceRepo:
    @staticmethod
    async def insert_if_absent(session: AsyncSession, *, user_id: int) -> None:
        stmt = (
            pg_insert(Balance)
            .values(user_id=user_id, quantity=0)
            .on_conflict_do_nothing(index_elements=[Balance.user_id])
        )
        await session.execute(stmt)

    @staticmethod
    async def get_quantity(session: AsyncSession, *, user_id: int) -> int | None:
        stmt = select(Balance.quantity).where(Balance.user_id == user_id)
        return await session.scalar(stmt)

    @staticmethod
    async def increment(session: AsyncSession, *, user_id: int, amount: int) -> int | None:
        stmt = (
            update(Balance)
            .where(Balance.user_id == user_id)
            .values(quantity=Balance.quantity + amount)
            .returning(Balance.quantity)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
