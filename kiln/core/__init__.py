"""Lifecycle coordination, events, restart scheduling and client notifications."""

from kiln.core.event_bus import (
    BuildEnd,
    BuildStart,
    ErrorReport,
    EventBus,
    EventBusError,
    LauncherEvent,
    RegistrationError,
    ServerReady,
    StatusChange,
)
from kiln.core.lifecycle import (
    ErrorSeverity,
    LauncherHooks,
    LauncherStats,
    LifecycleCoordinator,
    LifecycleError,
    LifecycleState,
    LifecycleTransitionError,
)
from kiln.core.notify import ClientBroadcast, NotificationChannel
from kiln.core.restart import RestartPhase, RestartRaceRejected, RestartScheduler, RestartSignal

__all__ = [
    "BuildEnd",
    "BuildStart",
    "ClientBroadcast",
    "ErrorReport",
    "ErrorSeverity",
    "EventBus",
    "EventBusError",
    "LauncherEvent",
    "LauncherHooks",
    "LauncherStats",
    "LifecycleCoordinator",
    "LifecycleError",
    "LifecycleState",
    "LifecycleTransitionError",
    "NotificationChannel",
    "RegistrationError",
    "RestartPhase",
    "RestartRaceRejected",
    "RestartScheduler",
    "RestartSignal",
    "ServerReady",
    "StatusChange",
]
