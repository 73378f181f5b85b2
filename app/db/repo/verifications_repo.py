from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.verifications import Verification

EMAIL_VERIFICATION_TYPE = "email"


class VerificationsRepo:
    @staticmethod
    async def delete_for_user(session: AsyncSession, *, user_id: int) -> None:
        await session.execute(delete(Verification).where(Verification.user_id == user_id))

    @staticmethod
    async def create(session: AsyncSession, *, verification: Verification) -> Verification:
        session.add(verification)
        await session.flush()
        return verification

    @staticmethod
    async def get_by_email_and_code(
        session: AsyncSession,
        *,
        email: str,
        code: str,
        verification_type: str = EMAIL_VERIFICATION_TYPE,
    ) -> Verification | None:
        stmt = (
            select(Verification)
            .where(
                Verification.email == email,
                Verification.code == code,
                Verification.type == verification_type,
            )
            .order_by(Verification.issue_time.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
