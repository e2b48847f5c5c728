"""Session event channel shared by the session manager and the favorites core."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEvent:
    """Base class for events published on :class:`SessionEventBus`."""


@dataclass(frozen=True)
class LoginEvent(SessionEvent):
    """A session became authenticated.

    ``favorites`` is the server's favorites snapshot taken from the login
    response (populated documents or bare ids).
    """

    favorites: tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LogoutEvent(SessionEvent):
    """The session ended; locally pending favorites must be purged."""


EventT = TypeVar("EventT", bound=SessionEvent)
Handler = Callable[[Any], Awaitable[None] | None]


class SessionEventBus:
    """Observer channel for session lifecycle events.

    Several handlers may subscribe to the same event type.  A failing handler is
    logged and does not stop the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[SessionEvent], list[Handler]] = {}

    def subscribe(
        self, event_type: type[EventT], handler: Callable[[EventT], Awaitable[None] | None]
    ) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""

        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)
        logger.debug("Registered session handler for %s", event_type.__name__)

        def unsubscribe() -> None:
            try:
                handlers.remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def handler_count(self, event_type: type[SessionEvent]) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: SessionEvent) -> None:
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            logger.debug("No handlers registered for %s", event_type.__name__)
            return

        logger.info("Publishing session event: %s", event_type.__name__)
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Session handler %r failed for %s", handler, event_type.__name__
                )


__all__ = ["LoginEvent", "LogoutEvent", "SessionEvent", "SessionEventBus"]
