"""Toast-style notifications posted by the controllers and the view shell."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A transient user-facing message: short title plus one line."""

    title: str
    description: str = ""
    variant: str = "default"  # 'default' or 'destructive'
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def destructive(self) -> bool:
        return self.variant == "destructive"


class Notifier:
    """Collects notifications for the view and logs each one."""

    def __init__(self, limit: int = 20) -> None:
        self._items: deque[Notification] = deque(maxlen=limit)
        self._listeners: list[Callable[[Notification], None]] = []

    def add_listener(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self, title: str, description: str = "") -> Notification:
        return self._post(Notification(title=title, description=description))

    def error(self, title: str, description: str = "") -> Notification:
        return self._post(Notification(title=title, description=description, variant="destructive"))

    def _post(self, item: Notification) -> Notification:
        level = logging.WARNING if item.destructive else logging.INFO
        logger.log(level, "notification title=%r description=%r", item.title, item.description)
        self._items.append(item)
        for listener in list(self._listeners):
            listener(item)
        return item

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    @property
    def latest(self) -> Notification | None:
        return self._items[-1] if self._items else None

    def dismiss(self, item: Notification) -> None:
        try:
            self._items.remove(item)
        except ValueError:
            pass

    def clear(self) -> None:
        self._items.clear()
