"""Task List Controller: the running client's copy of the user's tasks.

Local changes are applied only after the backend has confirmed them, so a
failed call leaves the collection exactly as it was and nothing needs to
be rolled back.
"""

import logging
from enum import Enum
from typing import List, Optional, Set

from .config import VIEW_MODES
from .errors import AuthRequiredError, DoDidDoneError, StoreError
from .gateway import SessionGateway
from .models import Task, TaskStatus
from .notifications import Notifier
from .store import TaskStoreClient

logger = logging.getLogger(__name__)


class ListState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    LOAD_ERROR = "load_error"


class TaskListController:
    def __init__(self, store: TaskStoreClient, gateway: SessionGateway, notifier: Notifier,
                 view_mode: str = "card"):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.state = ListState.UNINITIALIZED
        self.view_mode = view_mode if view_mode in VIEW_MODES else "card"
        self._tasks: List[Task] = []
        self._busy: Set[str] = set()

    @property
    def tasks(self) -> List[Task]:
        # copy: callers must go through the controller to change the list
        return list(self._tasks)

    @property
    def is_loading(self) -> bool:
        return self.state is ListState.LOADING

    @property
    def is_empty(self) -> bool:
        return not self._tasks

    def get(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def is_busy(self, task_id: str) -> bool:
        return task_id in self._busy

    def set_view_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"view mode must be one of {VIEW_MODES}")
        self.view_mode = mode

    def toggle_view_mode(self) -> str:
        self.view_mode = "list" if self.view_mode == "card" else "card"
        return self.view_mode

    async def load(self) -> List[Task]:
        """Replace the collection with the backend's, newest first."""
        self.state = ListState.LOADING
        try:
            session = self.gateway.require_session()
            tasks = await self.store.list(session.user_id)
        except (AuthRequiredError, StoreError):
            self._tasks = []
            self.state = ListState.LOAD_ERROR
            self.notifier.error("Failed to load tasks", "Please try again later.")
            raise
        except BaseException:
            # cancelled or unexpected failure: never leave the loading flag set
            self.state = ListState.LOAD_ERROR
            raise
        self._tasks = list(tasks)
        self.state = ListState.READY
        logger.info("task list loaded count=%d", len(self._tasks))
        return self.tasks

    async def set_status(self, task_id: str, done: bool) -> Optional[Task]:
        if task_id in self._busy:
            logger.debug("status change ignored; request in flight for task %s", task_id)
            return None
        status = TaskStatus.from_done(done)
        self._busy.add(task_id)
        try:
            session = self.gateway.require_session()
            confirmed = await self.store.update_status(task_id, session.user_id, status)
        except DoDidDoneError:
            self.notifier.error("Failed to update status", "Please try again.")
            raise
        finally:
            self._busy.discard(task_id)
        updated = None
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                updated = task.model_copy(update={"status": confirmed.status, "updated_at": confirmed.updated_at})
                self._tasks[i] = updated
                break
        if updated is None:
            logger.info("status confirmed for task %s which is not in the local list", task_id)
            return None
        self.notifier.notify(
            "Task completed" if done else "Task marked as in progress",
            "Task status updated successfully.",
        )
        return updated

    async def remove(self, task_id: str) -> None:
        if task_id in self._busy:
            logger.debug("delete ignored; request in flight for task %s", task_id)
            return
        self._busy.add(task_id)
        try:
            session = self.gateway.require_session()
            await self.store.delete(task_id, session.user_id)
        except DoDidDoneError:
            self.notifier.error("Failed to delete task", "Please try again.")
            raise
        finally:
            self._busy.discard(task_id)
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        if len(self._tasks) != before:
            self.notifier.notify("Task deleted", "Task has been removed successfully.")

    def apply_edit(self, updated: Task) -> None:
        """Swap in an already-persisted edit; no store call."""
        for i, task in enumerate(self._tasks):
            if task.id == updated.id:
                self._tasks[i] = updated
                return
        logger.info("edited task %s is not in the local list", updated.id)

    def insert(self, created: Task) -> None:
        """Put an already-persisted task at the top; no store call."""
        self._tasks = [created] + [t for t in self._tasks if t.id != created.id]

    def clear(self) -> None:
        self._tasks = []
        self.state = ListState.UNINITIALIZED
