from __future__ import annotations

from sqlalchemy import TextClause, select, text, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.errors import is_schema_mismatch
from app.db.models.users import User

# Deployments stored the admin marker in different places; the first probe
# whose table and columns exist decides.
ADMIN_PROBES: tuple[TextClause, ...] = (
    text("SELECT is_admin FROM users WHERE user_id = :user_id"),
    text("SELECT role = 'admin' FROM users WHERE user_id = :user_id"),
    text("SELECT EXISTS (SELECT 1 FROM admins WHERE user_id = :user_id)"),
    text("SELECT EXISTS (SELECT 1 FROM user_roles WHERE user_id = :user_id AND role = 'admin')"),
)


class AdminStatusUnknownError(Exception):
    pass


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def set_email(session: AsyncSession, *, user_id: int, email: str) -> None:
        stmt = (
            update(User)
            .where(User.user_id == user_id)
            .values(email=email)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def is_admin(session: AsyncSession, user_id: int) -> bool:
        for probe in ADMIN_PROBES:
            try:
                async with session.begin_nested():
                    row = (await session.execute(probe, {"user_id": user_id})).first()
            except DBAPIError as exc:
                if is_schema_mismatch(exc):
                    continue
                raise
            if row is None:
                return False
            return bool(row[0])
        raise AdminStatusUnknownError(f"could not determine admin status for user {user_id}")
