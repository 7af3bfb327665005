"""Session-change events and the channel that delivers them.

Subscribers register a callback and get back a ``Subscription``. Anything
that subscribes must call ``unsubscribe()`` when it is torn down, or use
the subscription as a context manager.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from .models import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedIn:
    session: Session


@dataclass(frozen=True)
class SignedOut:
    pass


SessionEvent = Union[SignedIn, SignedOut]
SessionCallback = Callable[[SessionEvent], Optional[Awaitable[None]]]


class Subscription:
    def __init__(self, channel: "SessionEvents", callback: SessionCallback) -> None:
        self._channel = channel
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._channel._remove(self._callback)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class SessionEvents:
    """Delivers session events to subscribers in registration order."""

    def __init__(self) -> None:
        self._callbacks: list[SessionCallback] = []

    def subscribe(self, callback: SessionCallback) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(self, callback)

    def _remove(self, callback: SessionCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    async def emit(self, event: SessionEvent) -> None:
        logger.info("session event %s subscribers=%d", type(event).__name__, len(self._callbacks))
        # snapshot: callbacks may unsubscribe (or subscribe) while handling
        for callback in list(self._callbacks):
            if callback not in self._callbacks:
                continue
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # one broken subscriber must not starve the others
                logger.exception("session event subscriber failed event=%s", type(event).__name__)
