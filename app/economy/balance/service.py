from __future__ import annotations

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.errors import StorageError
from app.db.repo.balance_repo import BalanceRepo

logger = structlog.get_logger(__name__)


class BalanceLedger:
    """Per-user balance rows: lazy creation, in-transaction credit, standalone read."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    async def ensure(session: AsyncSession, user_id: int) -> None:
        await BalanceRepo.insert_if_absent(session, user_id=user_id)

    @staticmethod
    async def credit(session: AsyncSession, user_id: int, amount: int) -> int:
        if not session.in_transaction():
            raise StorageError("Failed to update balance", details="transaction is required")
        try:
            new_quantity = await BalanceRepo.increment(session, user_id=user_id, amount=amount)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to update balance", details=str(exc)) from exc
        if new_quantity is None:
            raise StorageError(
                "Failed to update balance",
                details=f"balance row for user {user_id} is missing",
            )
        return int(new_quantity)

    async def read(self, user_id: int) -> int:
        try:
            async with self._session_factory.begin() as session:
                quantity = await BalanceRepo.get_quantity(session, user_id=user_id)
                if quantity is None:
                    await BalanceRepo.insert_if_absent(session, user_id=user_id)
                    logger.info("balance_row_created", user_id=user_id)
                    return 0
                return int(quantity)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Failed to fetch balance", details=str(exc)) from exc
