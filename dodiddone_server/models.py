from typing import Optional
from datetime import datetime
from enum import Enum
from .utils import now_utc, new_id
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, Index


class TodoStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class User(SQLModel, table=True):
    """Account row; password stored as a passlib hash."""
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, sa_column_kwargs={"unique": True})
    name: Optional[str] = None
    password_hash: str
    # NULL until the signup token is verified (only enforced when
    # REQUIRE_EMAIL_CONFIRMATION is on).
    email_confirmed_at: Optional[datetime] = None
    created_at: datetime | None = Field(default_factory=now_utc)


class Session(SQLModel, table=True):
    """Server-side session backing an access token.

    The access token carries the session_token as its `sid` claim; deleting
    the row (logout) invalidates the token even before it expires.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    session_token: str = Field(sa_column_kwargs={"unique": True, "index": True})
    user_id: str = Field(foreign_key="user.id", index=True)
    created_at: datetime | None = Field(default_factory=now_utc)
    expires_at: Optional[datetime] = None


class AuthToken(SQLModel, table=True):
    """One-shot token for password recovery or signup confirmation."""
    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(sa_column_kwargs={"unique": True, "index": True})
    user_id: str = Field(foreign_key="user.id", index=True)
    kind: str  # 'signup' or 'recovery'
    created_at: datetime | None = Field(default_factory=now_utc)
    expires_at: Optional[datetime] = None
    used_at: Optional[datetime] = None


class Todo(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: str = Field(default="")
    status: str = Field(default=TodoStatus.IN_PROGRESS.value)
    created_at: datetime | None = Field(default_factory=now_utc)
    updated_at: datetime | None = Field(default_factory=now_utc)
    user_id: str = Field(foreign_key="user.id", index=True)

    __table_args__ = (
        CheckConstraint("status IN ('In Progress', 'Done')", name="ck_todo_status"),
        CheckConstraint("length(trim(title)) > 0", name="ck_todo_title"),
        Index("ix_todo_user_created", "user_id", "created_at"),
    )
