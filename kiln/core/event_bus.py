"""
Event Bus - launcher notifications.

This module implements a small publish/subscribe bus over a closed set of
lifecycle events:
1. status-change: the coordinator moved to a new LifecycleState
2. server-ready: a dev or preview server is answering
3. build-start / build-end: a production build began or finished
4. error: a lifecycle operation failed

Subscribers:
- Execute in priority order (higher priority = earlier execution)
- Receive a typed payload dataclass
- Never break dispatch: a failing subscriber is reported and skipped
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventBusError(Exception):
    """Base exception for event bus errors."""

    pass


class RegistrationError(EventBusError):
    """Raised when subscribing to an unknown event or publishing a wrong payload."""

    pass


class LauncherEvent(str, Enum):
    STATUS_CHANGE = "status-change"
    SERVER_READY = "server-ready"
    BUILD_START = "build-start"
    BUILD_END = "build-end"
    ERROR = "error"


@dataclass(frozen=True)
class StatusChange:
    previous: str
    current: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ServerReady:
    kind: str  # "dev" or "preview"
    url: str | None
    restart: bool = False


@dataclass(frozen=True)
class BuildStart:
    started_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class BuildEnd:
    success: bool
    duration: float
    result: Any = None


@dataclass(frozen=True)
class ErrorReport:
    """
    Structured description of a failed lifecycle operation.

    Attributes:
        operation: Coordinator method that failed, e.g. ``start_dev``
        error: The exception raised
        severity: Severity name (``low`` .. ``critical``)
        error_count: Coordinator error count including this one
    """

    operation: str
    error: BaseException
    severity: str
    error_count: int
    at: float = field(default_factory=time.time)


EVENT_PAYLOADS: dict[LauncherEvent, type] = {
    LauncherEvent.STATUS_CHANGE: StatusChange,
    LauncherEvent.SERVER_READY: ServerReady,
    LauncherEvent.BUILD_START: BuildStart,
    LauncherEvent.BUILD_END: BuildEnd,
    LauncherEvent.ERROR: ErrorReport,
}


@dataclass
class Handler:
    """
    Represents a registered subscriber.

    Attributes:
        callback: Callable taking the payload
        priority: Higher priority executes first
        registration_order: Tie-breaker for same priority (lower = earlier)
    """

    callback: Callable[[Any], Any]
    priority: int
    registration_order: int


def _coerce_event(event: LauncherEvent | str) -> LauncherEvent:
    try:
        return LauncherEvent(event)
    except ValueError:
        known = ", ".join(e.value for e in LauncherEvent)
        raise RegistrationError(f"Unknown event '{event}'. Known events: {known}") from None


class EventBus:
    """
    Publish/subscribe hub owned by one coordinator.

    Example:
        bus = EventBus()
        bus.subscribe("server-ready", lambda p: print(p.url))
        bus.publish(LauncherEvent.SERVER_READY, ServerReady("dev", "http://localhost:3000"))
    """

    def __init__(self):
        self._routes: dict[LauncherEvent, list[Handler]] = {e: [] for e in LauncherEvent}
        self._registration_counter = 0

    def subscribe(
        self,
        event: LauncherEvent | str,
        callback: Callable[[Any], Any],
        priority: int = 0,
    ) -> Callable[[], None]:
        """
        Register ``callback`` for ``event``.

        Returns:
            A function that removes the subscription

        Raises:
            RegistrationError: If ``event`` is not a known launcher event
        """
        key = _coerce_event(event)
        handler = Handler(callback, priority, self._registration_counter)
        self._registration_counter += 1
        self._routes[key].append(handler)
        self._routes[key].sort(key=lambda h: (-h.priority, h.registration_order))

        def unsubscribe() -> None:
            if handler in self._routes[key]:
                self._routes[key].remove(handler)

        return unsubscribe

    def subscribers(self, event: LauncherEvent | str) -> int:
        return len(self._routes[_coerce_event(event)])

    def publish(self, event: LauncherEvent | str, payload: Any) -> None:
        """
        Deliver ``payload`` to every subscriber of ``event``.

        Raises:
            RegistrationError: If the payload type does not belong to the event
        """
        key = _coerce_event(event)
        expected = EVENT_PAYLOADS[key]
        if not isinstance(payload, expected):
            raise RegistrationError(
                f"Event '{key.value}' expects {expected.__name__}, got {type(payload).__name__}"
            )

        for handler in list(self._routes[key]):
            try:
                handler.callback(payload)
            except Exception as e:
                logger.warning("Subscriber for '%s' failed: %s", key.value, e)

    def clear(self) -> None:
        for handlers in self._routes.values():
            handlers.clear()
