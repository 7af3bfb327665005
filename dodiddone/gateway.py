"""Session Gateway: the client's only door to the backend auth API."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .errors import AuthError, AuthErrorReason, AuthRequiredError
from .events import SessionCallback, SessionEvents, SignedIn, SignedOut, Subscription
from .models import Session

logger = logging.getLogger(__name__)


class IssuedToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


def error_code(response: httpx.Response) -> Optional[str]:
    """Pull ``detail.code`` out of a backend error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return detail.get("code")
    return None


class SessionGateway:
    """Wraps the backend auth endpoints and owns the current Session.

    Session changes are published on ``events`` as SignedIn / SignedOut.
    """

    def __init__(self, http: httpx.AsyncClient, events: Optional[SessionEvents] = None):
        self.http = http
        self.events = events or SessionEvents()
        self.access_token: Optional[str] = None
        self.expires_at: Optional[datetime] = None
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def require_session(self) -> Session:
        if self._session is None or self.access_token is None:
            raise AuthRequiredError()
        return self._session

    def auth_headers(self) -> Dict[str, str]:
        """Get authentication headers for requests."""
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        return self.events.subscribe(callback)

    # ---- helpers ----

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("auth request failed method=%s url=%s error=%s", method, url, e)
            raise AuthError(AuthErrorReason.NETWORK_FAILURE, str(e)) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        code = error_code(response)
        try:
            reason = AuthErrorReason(code)
        except ValueError:
            reason = AuthErrorReason.SESSION_EXPIRED if response.status_code == 401 else AuthErrorReason.UNKNOWN
        logger.info("auth request rejected status=%s code=%s", response.status_code, code)
        raise AuthError(reason, code)

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.warning("auth reply is not JSON status=%s", response.status_code)
            raise AuthError(AuthErrorReason.UNKNOWN, "malformed response payload") from e

    @staticmethod
    def _session_from_user(payload: Any) -> Session:
        if not isinstance(payload, dict):
            raise AuthError(AuthErrorReason.UNKNOWN, "malformed user payload")
        try:
            return Session(user_id=payload.get("id"), email=payload.get("email"), name=payload.get("name"))
        except PydanticValidationError as e:
            raise AuthError(AuthErrorReason.UNKNOWN, "malformed user payload") from e

    def _token_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= datetime.now(timezone.utc)

    async def _establish(self, body: Any) -> Optional[Session]:
        """Adopt the session in an auth response; None when none was issued."""
        if not isinstance(body, dict):
            raise AuthError(AuthErrorReason.UNKNOWN, "malformed auth response")
        session = self._session_from_user(body.get("user"))
        if body.get("session") is None:
            return None
        try:
            issued = IssuedToken.model_validate(body["session"])
        except PydanticValidationError as e:
            raise AuthError(AuthErrorReason.UNKNOWN, "malformed session payload") from e
        self.access_token = issued.access_token
        self.expires_at = issued.expires_at
        self._session = session
        logger.info("signed in user_id=%s", session.user_id)
        await self.events.emit(SignedIn(session))
        return session

    async def _clear(self) -> None:
        was_signed_in = self._session is not None
        self.access_token = None
        self.expires_at = None
        self._session = None
        if was_signed_in:
            logger.info("signed out")
            await self.events.emit(SignedOut())

    async def handle_unauthorized(self) -> None:
        """Drop a session the backend no longer accepts."""
        logger.info("backend rejected the access token; clearing session")
        await self._clear()

    # ---- operations ----

    async def get_current_session(self) -> Optional[Session]:
        """Resolve the current session, revalidating the token with the backend."""
        if not self.access_token:
            return None
        if self._token_expired():
            await self._clear()
            return None
        response = await self._request("GET", "/auth/user", headers=self.auth_headers())
        if response.status_code == 401:
            await self._clear()
            return None
        self._raise_for_status(response)
        session = self._session_from_user(self._body(response))
        if session != self._session:
            self._session = session
            await self.events.emit(SignedIn(session))
        return session

    async def login(self, email: str, password: str) -> Session:
        logger.info("attempting login")
        response = await self._request("POST", "/auth/token", json={"email": email, "password": password})
        self._raise_for_status(response)
        session = await self._establish(self._body(response))
        if session is None:
            raise AuthError(AuthErrorReason.EMAIL_NOT_CONFIRMED)
        return session

    async def signup(self, name: str, email: str, password: str) -> Optional[Session]:
        """Create an account. Returns None when the email must be confirmed first."""
        response = await self._request(
            "POST", "/auth/signup", json={"name": name, "email": email, "password": password}
        )
        self._raise_for_status(response)
        session = await self._establish(self._body(response))
        if session is None:
            logger.info("signup requires email confirmation")
        return session

    async def logout(self) -> None:
        if self.access_token:
            response = await self._request("POST", "/auth/logout", headers=self.auth_headers())
            # 401 means the backend already forgot the session
            if response.status_code != 401:
                self._raise_for_status(response)
        await self._clear()

    async def reset_password_request(self, email: str, redirect_to: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"email": email}
        if redirect_to:
            payload["redirect_to"] = redirect_to
        response = await self._request("POST", "/auth/recover", json=payload)
        self._raise_for_status(response)
        logger.info("password reset requested")

    async def update_password(self, new_password: str) -> None:
        self.require_session()
        response = await self._request(
            "PUT", "/auth/user", json={"password": new_password}, headers=self.auth_headers()
        )
        if response.status_code == 401:
            await self._clear()
        self._raise_for_status(response)
        logger.info("password updated")

    async def verify(self, token: str, kind: str = "recovery") -> Session:
        """Exchange a recovery or signup-confirmation token for a session."""
        response = await self._request("POST", "/auth/verify", json={"token": token, "type": kind})
        self._raise_for_status(response)
        session = await self._establish(self._body(response))
        if session is None:
            raise AuthError(AuthErrorReason.UNKNOWN, "verification issued no session")
        return session
