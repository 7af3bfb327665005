from fastapi import HTTPException, status


def api_error(status_code: int, code: str, message: str, headers: dict | None = None) -> HTTPException:
    """Build an HTTPException whose detail carries a machine-readable code.

    Clients branch on ``detail.code``; ``detail.message`` is for humans.
    """
    return HTTPException(status_code=status_code, detail={"code": code, "message": message}, headers=headers)


def not_authenticated() -> HTTPException:
    return api_error(
        status.HTTP_401_UNAUTHORIZED,
        "not_authenticated",
        "authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def session_expired() -> HTTPException:
    return api_error(
        status.HTTP_401_UNAUTHORIZED,
        "session_expired",
        "session is invalid or has expired",
        headers={"WWW-Authenticate": "Bearer"},
    )


def permission_denied(message: str = "forbidden") -> HTTPException:
    return api_error(status.HTTP_403_FORBIDDEN, "permission_denied", message)


def not_found(message: str = "not found") -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, "not_found", message)
