"""Value types shared by the client components."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def from_done(cls, done: bool) -> "TaskStatus":
        return cls.DONE if done else cls.IN_PROGRESS


class Task(BaseModel):
    """A user-owned task as returned by the backend.

    Instances are immutable; the task list replaces entries instead of
    mutating them so views holding an old value never see it change.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.IN_PROGRESS
    created_at: datetime
    updated_at: datetime
    user_id: str

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v):
        return v or ""

    @property
    def done(self) -> bool:
        return self.status is TaskStatus.DONE


class Session(BaseModel):
    """The authenticated identity of the running client."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        local = self.email.split("@")[0]
        return local or "User"
