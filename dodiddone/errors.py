"""Error taxonomy for the DoDidDone client.

``ValidationError`` never reaches the network. ``AuthRequiredError`` means
no session was active when one was needed. ``AuthError`` and ``StoreError``
carry a reason from the backend so callers can pick a message.
"""

from enum import Enum


class DoDidDoneError(Exception):
    """Base class for every error raised by the client."""


class ValidationError(DoDidDoneError):
    """Form input rejected before submission."""


class AuthRequiredError(DoDidDoneError):
    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)


class AuthErrorReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    USER_ALREADY_EXISTS = "user_already_exists"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    INVALID_TOKEN = "invalid_token"
    SESSION_EXPIRED = "session_expired"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


AUTH_MESSAGES: dict[AuthErrorReason, str] = {
    AuthErrorReason.INVALID_CREDENTIALS: "Invalid email or password. Please try again.",
    AuthErrorReason.EMAIL_NOT_CONFIRMED: "Please check your email for the confirmation link.",
    AuthErrorReason.USER_ALREADY_EXISTS: "An account with this email already exists.",
    AuthErrorReason.WEAK_PASSWORD: "Password is too short.",
    AuthErrorReason.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorReason.INVALID_TOKEN: "This link has expired or is invalid.",
    AuthErrorReason.SESSION_EXPIRED: "Your session has expired. Please log in again.",
    AuthErrorReason.NETWORK_FAILURE: "Something went wrong. Please try again.",
    AuthErrorReason.UNKNOWN: "Something went wrong. Please try again.",
}


class AuthError(DoDidDoneError):
    def __init__(self, reason: AuthErrorReason, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)

    @property
    def user_message(self) -> str:
        return AUTH_MESSAGES[self.reason]


class StoreErrorReason(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONSTRAINT_VIOLATION = "constraint_violation"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


class StoreError(DoDidDoneError):
    def __init__(self, reason: StoreErrorReason, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)
