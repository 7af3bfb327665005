import uuid
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def as_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from sqlite."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()
