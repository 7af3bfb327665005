from fastapi import FastAPI, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from typing import Optional, Literal
from contextlib import asynccontextmanager
import logging
import sys

from . import config
from .auth import (
    TokenData,
    IssuedSession,
    authenticate_user,
    consume_auth_token,
    create_auth_token,
    create_session_for_user,
    delete_session,
    delete_sessions_for_user,
    get_current_token,
    get_user_by_email,
    hash_password,
    require_login,
)
from .db import async_session, init_db
from .errors import api_error, not_authenticated
from .models import User
from .todos import router as todos_router
from .utils import now_utc, normalize_email

logger = logging.getLogger(__name__)
# Ensure INFO-level messages from this package appear on the server console
# when no handlers are configured.
_pkg_logger = logging.getLogger('dodiddone_server')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The application must not start with the import-time fallback secret.
    if not config.SECRET_KEY or config.SECRET_KEY == config.INSECURE_SECRET_KEY:
        raise RuntimeError("SECRET_KEY not set or insecure fallback in use; set the SECRET_KEY environment variable before starting the server")
    await init_db()
    logger.info('starting server using DATABASE_URL=%s require_email_confirmation=%s',
                config.DATABASE_URL, config.REQUIRE_EMAIL_CONFIRMATION)
    yield
    logger.info('server shutting down')


app = FastAPI(title="DoDidDone", lifespan=lifespan)
app.include_router(todos_router)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception('unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"code": "unknown", "message": "Internal server error"}},
    )


class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: str
    password: str


class TokenRequest(BaseModel):
    email: str
    password: str


class PasswordUpdate(BaseModel):
    password: str


class RecoverRequest(BaseModel):
    email: str
    redirect_to: Optional[str] = None


class VerifyRequest(BaseModel):
    token: str
    type: Literal['signup', 'recovery']


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "email_confirmed": user.email_confirmed_at is not None,
    }


def _auth_response(user: User, issued: Optional[IssuedSession]) -> dict:
    return {
        "user": _serialize_user(user),
        "session": issued.model_dump(mode="json") if issued else None,
    }


def _check_password(password: str) -> None:
    if len(password or '') < config.MIN_PASSWORD_LENGTH:
        raise api_error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "weak_password",
            f"Password should be at least {config.MIN_PASSWORD_LENGTH} characters",
        )


def _check_email(email: str) -> str:
    cleaned = normalize_email(email)
    local, _, domain = cleaned.partition('@')
    if not local or '.' not in domain:
        raise api_error(status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_email", "Unable to validate email address")
    return cleaned


@app.post('/auth/signup')
async def signup(req: SignupRequest):
    email = _check_email(req.email)
    _check_password(req.password)
    if await get_user_by_email(email):
        raise api_error(status.HTTP_400_BAD_REQUEST, "user_already_exists", "User already registered")
    name = (req.name or '').strip() or None
    user = User(email=email, name=name, password_hash=hash_password(req.password))
    if not config.REQUIRE_EMAIL_CONFIRMATION:
        user.email_confirmed_at = now_utc()
    async with async_session() as sess:
        sess.add(user)
        await sess.commit()
        await sess.refresh(user)
    logger.info('signup user_id=%s confirmation_required=%s', user.id, config.REQUIRE_EMAIL_CONFIRMATION)
    if config.REQUIRE_EMAIL_CONFIRMATION:
        token = await create_auth_token(user, 'signup')
        # stands in for the confirmation email
        logger.info('confirmation link for %s: %s/auth/confirm?token=%s&type=signup', user.email, config.SITE_URL, token)
        return _auth_response(user, None)
    issued = await create_session_for_user(user)
    return _auth_response(user, issued)


@app.post('/auth/token')
async def login_for_access_token(req: TokenRequest):
    user = await authenticate_user(req.email, req.password)
    if not user:
        logger.info('login failed email=%s', normalize_email(req.email))
        raise api_error(status.HTTP_400_BAD_REQUEST, "invalid_credentials", "Invalid login credentials")
    if config.REQUIRE_EMAIL_CONFIRMATION and user.email_confirmed_at is None:
        raise api_error(status.HTTP_400_BAD_REQUEST, "email_not_confirmed", "Email not confirmed")
    issued = await create_session_for_user(user)
    return _auth_response(user, issued)


@app.post('/auth/logout', status_code=status.HTTP_204_NO_CONTENT)
async def logout(token_data: Optional[TokenData] = Depends(get_current_token)):
    if token_data is None:
        raise not_authenticated()
    await delete_session(token_data.session_token)
    logger.info('logout user_id=%s', token_data.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get('/auth/user')
async def get_user(current_user: User = Depends(require_login)):
    return _serialize_user(current_user)


@app.put('/auth/user')
async def update_user_password(
    req: PasswordUpdate,
    current_user: User = Depends(require_login),
    token_data: Optional[TokenData] = Depends(get_current_token),
):
    """Change the caller's password and revoke their other sessions."""
    _check_password(req.password)
    async with async_session() as sess:
        user = await sess.get(User, current_user.id)
        user.password_hash = hash_password(req.password)
        sess.add(user)
        await sess.commit()
        await sess.refresh(user)
    await delete_sessions_for_user(user.id, keep=token_data.session_token if token_data else None)
    logger.info('password updated user_id=%s', user.id)
    return _serialize_user(user)


@app.post('/auth/recover')
async def recover_password(req: RecoverRequest):
    """Issue a recovery token. The reply never reveals whether the email exists."""
    user = await get_user_by_email(req.email)
    if user:
        token = await create_auth_token(user, 'recovery')
        target = req.redirect_to or f"{config.SITE_URL}/reset-password"
        # stands in for the recovery email
        logger.info('recovery link for %s: %s?token=%s&type=recovery', user.email, target, token)
    else:
        logger.info('recovery requested for unknown email')
    return {}


@app.post('/auth/verify')
async def verify_token(req: VerifyRequest):
    user = await consume_auth_token(req.token, req.type)
    if user is None:
        raise api_error(status.HTTP_400_BAD_REQUEST, "invalid_token", "Token has expired or is invalid")
    if req.type == 'signup' and user.email_confirmed_at is None:
        async with async_session() as sess:
            row = await sess.get(User, user.id)
            row.email_confirmed_at = now_utc()
            sess.add(row)
            await sess.commit()
            await sess.refresh(row)
            user = row
    issued = await create_session_for_user(user)
    logger.info('token verified type=%s user_id=%s', req.type, user.id)
    return _auth_response(user, issued)
