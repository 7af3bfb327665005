"""DoDidDone client: session handling and task synchronization."""

from .errors import (
    AuthError,
    AuthErrorReason,
    AuthRequiredError,
    DoDidDoneError,
    StoreError,
    StoreErrorReason,
    ValidationError,
)
from .events import SessionEvents, SignedIn, SignedOut, Subscription
from .gateway import SessionGateway
from .models import Session, Task, TaskStatus
from .notifications import Notification, Notifier
from .shell import Dashboard, Screen, ViewShell
from .store import TaskStoreClient
from .task_form import TaskFormController
from .task_list import ListState, TaskListController

__all__ = [
    "AuthError",
    "AuthErrorReason",
    "AuthRequiredError",
    "Dashboard",
    "DoDidDoneError",
    "ListState",
    "Notification",
    "Notifier",
    "Screen",
    "Session",
    "SessionEvents",
    "SessionGateway",
    "SignedIn",
    "SignedOut",
    "StoreError",
    "StoreErrorReason",
    "Subscription",
    "Task",
    "TaskFormController",
    "TaskListController",
    "TaskStatus",
    "TaskStoreClient",
    "ValidationError",
    "ViewShell",
]
