"""Task Form Controller: transient input state for creating or editing a task."""

import logging
from typing import Callable, Optional

from .errors import DoDidDoneError, ValidationError
from .gateway import SessionGateway
from .models import Task, TaskStatus
from .notifications import Notifier
from .store import TaskStoreClient

logger = logging.getLogger(__name__)


class TaskFormController:
    """Holds title / description / status for one task.

    Without ``task`` the form creates a new task (status fixed to In
    Progress) and resets after each submission. With ``task`` it edits that
    task and closes after a successful save.
    """

    def __init__(self, store: TaskStoreClient, gateway: SessionGateway, notifier: Notifier,
                 on_complete: Callable[[Task], None], task: Optional[Task] = None):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.on_complete = on_complete
        self.task = task
        self.submitting = False
        if task is None:
            self.title = ""
            self.description = ""
            self.status = TaskStatus.IN_PROGRESS
            self.is_open = True
            self.expanded = False
        else:
            self.title = task.title
            self.description = task.description or ""
            self.status = task.status
            self.is_open = True
            self.expanded = True

    @property
    def is_edit(self) -> bool:
        return self.task is not None

    def set_title(self, value: str) -> None:
        self.title = value
        if value and not self.expanded:
            self.expanded = True

    def set_description(self, value: str) -> None:
        self.description = value

    def set_status(self, status: TaskStatus) -> None:
        if not self.is_edit:
            raise ValueError("new tasks always start In Progress")
        self.status = TaskStatus(status)

    def focus(self) -> None:
        self.expanded = True

    def validate(self) -> None:
        if not self.title.strip():
            raise ValidationError("title required")

    def reset(self) -> None:
        self.title = ""
        self.description = ""
        self.status = TaskStatus.IN_PROGRESS
        self.expanded = False

    def cancel(self) -> None:
        if self.is_edit:
            self.is_open = False
        else:
            self.reset()

    async def submit(self) -> Optional[Task]:
        """Persist the form. Returns None when a submission is already running."""
        if self.submitting:
            logger.debug("submit ignored; a submission is already in flight")
            return None
        try:
            self.validate()
        except ValidationError:
            self.notifier.error("Title is required", "Please enter a title for your task.")
            raise
        self.submitting = True
        try:
            session = self.gateway.require_session()
            if self.is_edit:
                saved = await self.store.update(
                    self.task.id,
                    session.user_id,
                    {"title": self.title.strip(), "description": self.description, "status": self.status},
                )
            else:
                saved = await self.store.create(session.user_id, self.title.strip(), self.description)
        except DoDidDoneError:
            if self.is_edit:
                self.notifier.error("Failed to update task", "Please try again later.")
            else:
                self.notifier.error("Failed to add task", "Please try again later.")
            raise
        finally:
            self.submitting = False

        self.on_complete(saved)
        if self.is_edit:
            self.task = saved
            self.is_open = False
            self.notifier.notify("Task updated", "Your task has been updated successfully.")
        else:
            self.reset()
            self.notifier.notify("Task added", "Your new task has been added successfully.")
        return saved
