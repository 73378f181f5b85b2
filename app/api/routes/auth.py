from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.deps import (
    SessionFactory,
    current_user_id,
    get_login_code_service,
    http_error,
    load_admin_status,
    storage_http_error,
)
from app.db.errors import StorageError
from app.db.session import get_session_factory
from app.services.login_codes import (
    IssuedLogin,
    LoginCodeExpiredError,
    LoginCodeInvalidError,
    LoginCodeService,
    LoginEmailNotFoundError,
    LoginUserNotFoundError,
)
from app.services.tokens import TokenError

router = APIRouter(prefix="/api", tags=["auth"])

CODE_SENT_MESSAGE = "Verification code sent to email"


class LoginCodeRequest(BaseModel):
    email: str = ""


class LoginVerifyRequest(BaseModel):
    email: str = ""
    code: str = ""


class TokenVerifyRequest(BaseModel):
    token: str = ""


class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    token: str
    userid: int


class TokenOwnerResponse(BaseModel):
    firstname: str | None = None
    lastname: str | None = None


class AdminStatusResponse(BaseModel):
    is_admin: bool


def _login_response(issued: IssuedLogin) -> LoginResponse:
    return LoginResponse(token=issued.token, userid=issued.user_id)


def _require_email_and_code(payload: LoginVerifyRequest) -> tuple[str, str]:
    email = payload.email.strip()
    code = payload.code.strip()
    if not email or not code:
        raise http_error(status.HTTP_400_BAD_REQUEST, "Email and code are required")
    return email, code


@router.post("/loginviaemail", response_model=MessageResponse)
async def login_via_email(
    payload: LoginCodeRequest,
    service: LoginCodeService = Depends(get_login_code_service),
) -> MessageResponse:
    email = payload.email.strip()
    if not email:
        raise http_error(status.HTTP_400_BAD_REQUEST, "Email is required")
    try:
        await service.request_code(email)
    except LoginEmailNotFoundError as exc:
        raise http_error(status.HTTP_404_NOT_FOUND, str(exc)) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return MessageResponse(message=CODE_SENT_MESSAGE)


@router.post("/loginviaemailverify", response_model=LoginResponse)
async def login_via_email_verify(
    payload: LoginVerifyRequest,
    service: LoginCodeService = Depends(get_login_code_service),
) -> LoginResponse:
    email, code = _require_email_and_code(payload)
    try:
        issued = await service.verify_login(email, code)
    except (LoginCodeInvalidError, LoginCodeExpiredError) as exc:
        raise http_error(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return _login_response(issued)


@router.post("/verifyemail", response_model=LoginResponse)
async def verify_email(
    payload: LoginVerifyRequest,
    service: LoginCodeService = Depends(get_login_code_service),
) -> LoginResponse:
    email, code = _require_email_and_code(payload)
    try:
        issued = await service.verify_email(email, code)
    except (LoginCodeInvalidError, LoginCodeExpiredError) as exc:
        raise http_error(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return _login_response(issued)


@router.post("/tokenverify", response_model=TokenOwnerResponse, response_model_exclude_none=True)
async def token_verify(
    payload: TokenVerifyRequest,
    service: LoginCodeService = Depends(get_login_code_service),
) -> TokenOwnerResponse:
    token = payload.token.strip()
    if not token:
        raise http_error(status.HTTP_400_BAD_REQUEST, "Token is required")
    try:
        owner = await service.describe_token(token)
    except TokenError as exc:
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid or expired token",
            details=exc.message,
        ) from exc
    except LoginUserNotFoundError as exc:
        raise http_error(status.HTTP_404_NOT_FOUND, str(exc)) from exc
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return TokenOwnerResponse(firstname=owner.first_name, lastname=owner.last_name)


@router.get("/verifyadmin", response_model=AdminStatusResponse)
async def verify_admin(
    user_id: int = Depends(current_user_id),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> AdminStatusResponse:
    return AdminStatusResponse(is_admin=await load_admin_status(session_factory, user_id))
