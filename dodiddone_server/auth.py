from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import select
from sqlalchemy import delete as sqlalchemy_delete
from passlib.context import CryptContext
from jose import JWTError, jwt
from pydantic import BaseModel
import secrets
import logging

from . import config
from .db import async_session
from .errors import not_authenticated, session_expired
from .models import User, Session, AuthToken
from .utils import now_utc, as_utc, normalize_email

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# prefer a pure-Python, widely-available scheme for tests and portability;
# keep bcrypt as a fallback if available.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class TokenData(BaseModel):
    user_id: Optional[str] = None
    session_token: Optional[str] = None


class IssuedSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


async def get_user_by_email(email: str) -> Optional[User]:
    async with async_session() as sess:
        q = await sess.exec(select(User).where(User.email == normalize_email(email)))
        return q.first()


async def get_user_by_id(user_id: str) -> Optional[User]:
    async with async_session() as sess:
        return await sess.get(User, user_id)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def authenticate_user(email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(email)
    if not user:
        return None
    if not await verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(data: dict, expires_at: datetime) -> str:
    to_encode = data.copy()
    # RFC 7519 recommends NumericDate (seconds since epoch). Encode as int.
    to_encode.update({"exp": int(expires_at.timestamp())})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=ALGORITHM)


async def create_session_for_user(user: User, expires_delta: Optional[timedelta] = None) -> IssuedSession:
    """Create a server-side session row and return a bearer token bound to it."""
    sess_token = secrets.token_urlsafe(32)
    expires_at = now_utc() + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    async with async_session() as s:
        s.add(Session(session_token=sess_token, user_id=user.id, expires_at=expires_at))
        await s.commit()
    token = create_access_token({"sub": user.id, "sid": sess_token}, expires_at)
    logger.info('session created user_id=%s expires_at=%s', user.id, expires_at.isoformat())
    return IssuedSession(access_token=token, expires_at=expires_at)


async def get_user_by_session_token(session_token: str) -> Optional[User]:
    async with async_session() as s:
        q = await s.exec(select(Session).where(Session.session_token == session_token))
        sess_row = q.first()
        if not sess_row:
            return None
        expires_at = as_utc(sess_row.expires_at)
        if expires_at and expires_at < now_utc():
            # expired: drop the row so the token can never be replayed
            await s.exec(sqlalchemy_delete(Session).where(Session.session_token == session_token))
            await s.commit()
            logger.info('expired session removed user_id=%s', sess_row.user_id)
            return None
        return await s.get(User, sess_row.user_id)


async def delete_session(session_token: str) -> None:
    async with async_session() as s:
        await s.exec(sqlalchemy_delete(Session).where(Session.session_token == session_token))
        await s.commit()


async def delete_sessions_for_user(user_id: str, keep: Optional[str] = None) -> None:
    """Revoke every session of a user, optionally keeping one token alive."""
    async with async_session() as s:
        stmt = sqlalchemy_delete(Session).where(Session.user_id == user_id)
        if keep:
            stmt = stmt.where(Session.session_token != keep)
        await s.exec(stmt)
        await s.commit()


async def create_auth_token(user: User, kind: str) -> str:
    token = secrets.token_urlsafe(24)
    expires_at = now_utc() + timedelta(minutes=config.RECOVERY_TOKEN_EXPIRE_MINUTES)
    async with async_session() as s:
        s.add(AuthToken(token=token, user_id=user.id, kind=kind, expires_at=expires_at))
        await s.commit()
    return token


async def consume_auth_token(token: str, kind: str) -> Optional[User]:
    """Mark a one-shot token used and return its user, or None if unusable."""
    async with async_session() as s:
        q = await s.exec(select(AuthToken).where(AuthToken.token == token).where(AuthToken.kind == kind))
        row = q.first()
        if not row or row.used_at is not None:
            return None
        expires_at = as_utc(row.expires_at)
        if expires_at and expires_at < now_utc():
            return None
        row.used_at = now_utc()
        s.add(row)
        await s.commit()
        return await s.get(User, row.user_id)


def decode_access_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info('access token rejected: %s', str(e))
        raise session_expired()
    user_id = payload.get("sub")
    sid = payload.get("sid")
    if user_id is None or sid is None:
        raise session_expired()
    return TokenData(user_id=user_id, session_token=sid)


async def get_current_token(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[TokenData]:
    if not token:
        return None
    return decode_access_token(token)


async def get_current_user(token_data: Optional[TokenData] = Depends(get_current_token)) -> Optional[User]:
    if token_data is None:
        return None
    user = await get_user_by_session_token(token_data.session_token)
    if user is None or user.id != token_data.user_id:
        raise session_expired()
    return user


async def require_login(user: Optional[User] = Depends(get_current_user)) -> User:
    """Dependency that enforces an authenticated user.

    Returns the User when present, otherwise raises 401 Unauthorized.
    """
    if not user:
        raise not_authenticated()
    return user
