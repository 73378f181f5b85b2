from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.db.errors import StorageError
from app.db.models.verifications import Verification
from app.db.repo.users_repo import UsersRepo
from app.db.repo.verifications_repo import EMAIL_VERIFICATION_TYPE, VerificationsRepo
from app.services.mailer import send_login_code_email
from app.services.tokens import issue_token, parse_token

logger = structlog.get_logger(__name__)

LOGIN_CODE_MIN = 100_000
LOGIN_CODE_SPAN = 900_000

CodeSender = Callable[..., Awaitable[None]]


class LoginCodeError(Exception):
    pass


class LoginEmailNotFoundError(LoginCodeError):
    pass


class LoginCodeInvalidError(LoginCodeError):
    pass


class LoginCodeExpiredError(LoginCodeError):
    pass


class LoginUserNotFoundError(LoginCodeError):
    pass


@dataclass(frozen=True, slots=True)
class IssuedLogin:
    token: str
    user_id: int


@dataclass(frozen=True, slots=True)
class TokenOwner:
    first_name: str | None
    last_name: str | None


def generate_login_code() -> str:
    return f"{LOGIN_CODE_MIN + secrets.randbelow(LOGIN_CODE_SPAN):06d}"


class LoginCodeService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        send_code: CodeSender = send_login_code_email,
    ) -> None:
        self._session_factory = session_factory
        self._send_code = send_code

    async def request_code(self, email: str, *, now_utc: datetime | None = None) -> None:
        now_utc = now_utc or datetime.now(timezone.utc)
        ttl = timedelta(minutes=get_settings().login_code_ttl_minutes)
        code = generate_login_code()

        try:
            async with self._session_factory.begin() as session:
                user = await UsersRepo.get_by_email(session, email)
                if user is None:
                    raise LoginEmailNotFoundError("Email not found")
                await VerificationsRepo.delete_for_user(session, user_id=user.user_id)
                await VerificationsRepo.create(
                    session,
                    verification=Verification(
                        user_id=user.user_id,
                        email=email,
                        issue_time=now_utc,
                        expire_time=now_utc + ttl,
                        type=EMAIL_VERIFICATION_TYPE,
                        code=code,
                    ),
                )
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Database error", details=str(exc)) from exc

        try:
            await self._send_code(to_email=email, code=code)
        except Exception as exc:
            # The code is stored; the user can ask for a new one.
            logger.warning("login_code_email_failed", email=email, error=str(exc))
            return
        logger.info("login_code_sent", email=email)

    async def _consume_code(
        self,
        *,
        email: str,
        code: str,
        now_utc: datetime,
        update_email: bool,
    ) -> IssuedLogin:
        try:
            async with self._session_factory.begin() as session:
                verification = await VerificationsRepo.get_by_email_and_code(
                    session,
                    email=email,
                    code=code,
                )
                if verification is None:
                    raise LoginCodeInvalidError("Invalid code")
                if now_utc > verification.expire_time:
                    raise LoginCodeExpiredError("Code expired")

                user_id = verification.user_id
                if update_email:
                    await UsersRepo.set_email(session, user_id=user_id, email=email)
                await VerificationsRepo.delete_for_user(session, user_id=user_id)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Database error", details=str(exc)) from exc

        logger.info("login_code_verified", user_id=user_id, update_email=update_email)
        return IssuedLogin(token=issue_token(user_id, now_utc=now_utc), user_id=user_id)

    async def verify_login(
        self, email: str, code: str, *, now_utc: datetime | None = None
    ) -> IssuedLogin:
        return await self._consume_code(
            email=email,
            code=code,
            now_utc=now_utc or datetime.now(timezone.utc),
            update_email=False,
        )

    async def verify_email(
        self, email: str, code: str, *, now_utc: datetime | None = None
    ) -> IssuedLogin:
        return await self._consume_code(
            email=email,
            code=code,
            now_utc=now_utc or datetime.now(timezone.utc),
            update_email=True,
        )

    async def describe_token(self, token: str) -> TokenOwner:
        claims = parse_token(token)
        try:
            async with self._session_factory() as session:
                user = await UsersRepo.get_by_id(session, claims.user_id)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Database error", details=str(exc)) from exc
        if user is None:
            raise LoginUserNotFoundError("User not found")
        return TokenOwner(first_name=user.first_name, last_name=user.last_name)
