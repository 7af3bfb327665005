"""View Shell: screens, navigation, and the authenticated dashboard.

Navigation is always in-app: ``navigate()`` swaps the current screen and
tears down whatever the old screen held. The dashboard is the only screen
that subscribes to session events; leaving it releases the subscription.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

import httpx

from .config import Config
from .errors import AuthError, AuthErrorReason, DoDidDoneError
from .events import SessionEvent, SignedIn, SignedOut, Subscription
from .gateway import SessionGateway
from .models import Session, Task, TaskStatus
from .notifications import Notifier
from .store import TaskStoreClient
from .task_form import TaskFormController
from .task_list import TaskListController

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    LANDING = "/"
    LOGIN = "/login"
    SIGNUP = "/signup"
    RESET_PASSWORD = "/reset-password"
    DASHBOARD = "/dashboard"


class Dashboard:
    """The authenticated screen: task list, create form, and edit dialog."""

    def __init__(self, session: Session, gateway: SessionGateway, store: TaskStoreClient,
                 notifier: Notifier, view_mode: str = "card"):
        self.session = session
        self.gateway = gateway
        self.store = store
        self.notifier = notifier
        self.task_list = TaskListController(store, gateway, notifier, view_mode=view_mode)
        self.create_form = TaskFormController(store, gateway, notifier, on_complete=self.task_list.insert)
        self.edit_form: Optional[TaskFormController] = None
        self.subscription: Optional[Subscription] = None

    @property
    def greeting(self) -> str:
        if self.session.name:
            return f"Welcome, {self.session.name}!"
        return "Welcome back!"

    async def load(self) -> None:
        try:
            await self.task_list.load()
        except DoDidDoneError as e:
            logger.info("dashboard load failed: %s", e)

    async def toggle(self, task_id: str, done: bool) -> None:
        try:
            await self.task_list.set_status(task_id, done)
        except DoDidDoneError as e:
            logger.info("status change failed task=%s: %s", task_id, e)

    async def delete(self, task_id: str) -> None:
        try:
            await self.task_list.remove(task_id)
        except DoDidDoneError as e:
            logger.info("delete failed task=%s: %s", task_id, e)

    def begin_edit(self, task_id: str) -> Optional[TaskFormController]:
        current = self.edit_form
        if current is not None and current.submitting and current.task.id == task_id:
            # a save for this task is still in flight
            return current
        task = self.task_list.get(task_id)
        if task is None:
            return None
        self.edit_form = TaskFormController(
            self.store, self.gateway, self.notifier, on_complete=self.task_list.apply_edit, task=task
        )
        return self.edit_form

    def cancel_edit(self) -> None:
        if self.edit_form is not None:
            self.edit_form.cancel()
        self.edit_form = None

    async def submit_create(self) -> Optional[Task]:
        try:
            return await self.create_form.submit()
        except DoDidDoneError as e:
            logger.info("create failed: %s", e)
            return None

    async def submit_edit(self) -> Optional[Task]:
        form = self.edit_form
        if form is None:
            return None
        try:
            saved = await form.submit()
        except DoDidDoneError as e:
            logger.info("edit failed: %s", e)
            return None
        if saved is not None and self.edit_form is form and not form.is_open:
            self.edit_form = None
        return saved

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.unsubscribe()
            self.subscription = None
        self.edit_form = None


class ViewShell:
    def __init__(self, gateway: SessionGateway, store: TaskStoreClient,
                 notifier: Optional[Notifier] = None, config: Optional[Config] = None):
        self.gateway = gateway
        self.store = store
        self.notifier = notifier or Notifier()
        self.config = config or Config()
        self.screen: Optional[Screen] = None
        self.params: Dict[str, str] = {}
        self.history: List[Screen] = []
        self.dashboard: Optional[Dashboard] = None
        # message shown inline on the auth screens
        self.form_error: Optional[str] = None
        self.busy = False
        self._signing_out = False

    @classmethod
    def from_http(cls, http: httpx.AsyncClient, config: Optional[Config] = None) -> "ViewShell":
        gateway = SessionGateway(http)
        return cls(gateway, TaskStoreClient(http, gateway), Notifier(), config)

    @staticmethod
    def open_client(config: Config) -> httpx.AsyncClient:
        """HTTP client for the configured backend. Calls wait as long as the backend takes."""
        return httpx.AsyncClient(base_url=config.server_url, timeout=None)

    # ---- navigation ----

    async def navigate(self, screen: Screen, **params: str) -> Screen:
        if self.screen is Screen.DASHBOARD and self.dashboard is not None:
            self.dashboard.close()
            self.dashboard = None
        self.screen = screen
        self.params = dict(params)
        self.form_error = None
        self.history.append(screen)
        logger.info("navigate %s params=%s", screen.value, self.params)
        if screen is Screen.DASHBOARD:
            await self._mount_dashboard()
        return self.screen

    async def start(self, screen: Screen = Screen.LANDING, **params: str) -> Screen:
        return await self.navigate(screen, **params)

    async def close(self) -> None:
        if self.dashboard is not None:
            self.dashboard.close()
            self.dashboard = None

    async def _mount_dashboard(self) -> None:
        try:
            session = await self.gateway.get_current_session()
        except AuthError as e:
            logger.info("session check failed on dashboard: %s", e)
            session = None
        if session is None:
            await self.navigate(Screen.LOGIN, **{"from": "dashboard"})
            return
        dashboard = Dashboard(session, self.gateway, self.store, self.notifier, view_mode=self.config.view_mode)
        dashboard.subscription = self.gateway.on_session_change(self._on_session_event)
        self.dashboard = dashboard
        await dashboard.load()

    async def _on_session_event(self, event: SessionEvent) -> None:
        if self.screen is not Screen.DASHBOARD or self.dashboard is None:
            return
        if isinstance(event, SignedIn):
            self.dashboard.session = event.session
        elif isinstance(event, SignedOut) and not self._signing_out:
            await self.navigate(Screen.LOGIN, **{"from": "dashboard"})

    # ---- auth screens ----

    async def login(self, email: str, password: str) -> bool:
        self.busy = True
        self.form_error = None
        try:
            await self.gateway.login(email, password)
        except AuthError as e:
            self.form_error = e.user_message
            return False
        finally:
            self.busy = False
        self.notifier.notify("Login successful", "Redirecting to dashboard...")
        await self.navigate(Screen.DASHBOARD)
        return True

    async def signup(self, name: str, email: str, password: str) -> bool:
        self.busy = True
        self.form_error = None
        try:
            session = await self.gateway.signup(name, email, password)
        except AuthError as e:
            self.form_error = e.user_message
            return False
        finally:
            self.busy = False
        if session is None:
            self.notifier.notify("Check your email", "Confirm your address to finish signing up.")
            await self.navigate(Screen.LOGIN)
            return True
        self.notifier.notify("Account created", "Welcome to DoDidDone!")
        await self.navigate(Screen.DASHBOARD)
        return True

    async def forgot_password(self, email: str) -> bool:
        if not (email or "").strip():
            self.form_error = "Please enter your email address"
            return False
        try:
            await self.gateway.reset_password_request(email.strip(), redirect_to=self.config.reset_password_url)
        except AuthError:
            self.form_error = "Failed to send reset email. Please try again."
            return False
        self.notifier.notify("Password reset email sent", "Check your email for the password reset link")
        return True

    async def open_recovery_link(self, token: str) -> bool:
        """Follow a recovery link: trade its token for a session, then show the reset screen."""
        try:
            await self.gateway.verify(token, "recovery")
        except AuthError as e:
            self.notifier.error("Invalid reset link", e.user_message)
            await self.navigate(Screen.LOGIN)
            return False
        await self.navigate(Screen.RESET_PASSWORD)
        return True

    async def confirm_signup(self, token: str) -> bool:
        try:
            await self.gateway.verify(token, "signup")
        except AuthError as e:
            self.notifier.error("Confirmation failed", e.user_message)
            await self.navigate(Screen.LOGIN)
            return False
        await self.navigate(Screen.DASHBOARD)
        return True

    async def reset_password(self, password: str, confirm_password: str) -> bool:
        if password != confirm_password:
            self.notifier.error("Passwords do not match", "Please make sure your passwords match.")
            return False
        self.busy = True
        try:
            await self.gateway.update_password(password)
        except DoDidDoneError as e:
            description = "Please try again later."
            if isinstance(e, AuthError) and e.reason is AuthErrorReason.WEAK_PASSWORD:
                description = e.user_message
            self.notifier.error("Failed to update password", description)
            return False
        finally:
            self.busy = False
        self.notifier.notify("Password updated", "Your password has been updated successfully.")
        await self.navigate(Screen.LOGIN)
        return True

    async def logout(self) -> bool:
        self._signing_out = True
        try:
            await self.gateway.logout()
        except AuthError as e:
            logger.warning("logout failed: %s", e)
            self.notifier.error("Failed to log out", e.user_message)
            return False
        finally:
            self._signing_out = False
        await self.navigate(Screen.LANDING)
        return True

    # ---- dashboard pass-throughs ----

    def _require_dashboard(self) -> Dashboard:
        if self.dashboard is None:
            raise RuntimeError("dashboard is not mounted")
        return self.dashboard

    async def add_task(self, title: str, description: str = "") -> Optional[Task]:
        dashboard = self._require_dashboard()
        dashboard.create_form.set_title(title)
        dashboard.create_form.set_description(description)
        return await dashboard.submit_create()

    async def edit_task(self, task_id: str, title: Optional[str] = None, description: Optional[str] = None,
                        status: Optional[TaskStatus] = None) -> Optional[Task]:
        dashboard = self._require_dashboard()
        form = dashboard.begin_edit(task_id)
        if form is None:
            return None
        if form.submitting:
            logger.debug("edit ignored; a save is already in flight for task %s", task_id)
            return None
        if title is not None:
            form.set_title(title)
        if description is not None:
            form.set_description(description)
        if status is not None:
            form.set_status(status)
        return await dashboard.submit_edit()
