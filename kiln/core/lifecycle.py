"""
Launcher Lifecycle Coordinator.

This module owns the dev/build/preview state machine for one project.

Key features:
- Explicit transition table (illegal moves raise LifecycleTransitionError)
- Single-flight initialization shared by concurrent callers
- Start, stop, build and preview serialized so overlapping calls queue
- Detection, plugin resolution and config assembly before every start
- Debounced, race-free restarts on config changes (see kiln.core.restart)
- Error accounting with an opt-in exit policy
- Lifecycle hooks and statistics
"""

import asyncio
import contextlib
import inspect
import logging
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any

from kiln.config.aliases import resolve_aliases
from kiln.config.loader import ConfigError, ConfigSource, default_config
from kiln.config.merge import clone_config, merge_config
from kiln.config.watcher import ConfigWatcher
from kiln.core.event_bus import (
    BuildEnd,
    BuildStart,
    ErrorReport,
    EventBus,
    LauncherEvent,
    ServerReady,
    StatusChange,
)
from kiln.core.notify import CONFIG_UPDATED, ClientBroadcast, NotificationChannel
from kiln.core.restart import RestartScheduler
from kiln.detection.cache import DetectionCache
from kiln.detection.engine import DetectionEngine
from kiln.engine.base import BuildEngine, DevServerHandle, PreviewHandle
from kiln.engine.command import CommandEngine
from kiln.plugin.assembly import merge_plugins
from kiln.plugin.resolver import PluginResolver

logger = logging.getLogger(__name__)


class ErrorSeverity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, name: str) -> "ErrorSeverity":
        return cls[name.upper()]


class LifecycleError(Exception):
    """Base exception for lifecycle errors."""

    severity = ErrorSeverity.HIGH


class LifecycleTransitionError(LifecycleError):
    """Raised on a state change the transition table does not allow."""

    severity = ErrorSeverity.CRITICAL


class LifecycleState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    BUILDING = "building"
    PREVIEWING = "previewing"
    ERROR = "error"


_S = LifecycleState

# Every state may also move to ERROR; see _can_transition
TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    _S.IDLE: frozenset({_S.STARTING, _S.BUILDING, _S.PREVIEWING}),
    _S.STARTING: frozenset({_S.RUNNING, _S.STOPPING}),
    _S.RUNNING: frozenset({_S.STOPPING, _S.BUILDING, _S.PREVIEWING}),
    _S.STOPPING: frozenset({_S.STOPPED}),
    _S.STOPPED: frozenset({_S.STARTING, _S.BUILDING, _S.PREVIEWING}),
    _S.BUILDING: frozenset({_S.IDLE, _S.RUNNING, _S.STOPPING}),
    _S.PREVIEWING: frozenset({_S.IDLE, _S.RUNNING, _S.STARTING, _S.STOPPING, _S.BUILDING}),
    _S.ERROR: frozenset({_S.STARTING, _S.BUILDING, _S.PREVIEWING, _S.STOPPING}),
}


def _can_transition(current: LifecycleState, target: LifecycleState) -> bool:
    return target is _S.ERROR or target in TRANSITIONS[current]


@dataclass
class LauncherStats:
    start_count: int = 0
    build_count: int = 0
    error_count: int = 0
    total_build_time: float = 0.0
    last_activity: float | None = None

    @property
    def average_build_time(self) -> float:
        if not self.build_count:
            return 0.0
        return self.total_build_time / self.build_count


Hook = Callable[..., Any]


@dataclass
class LauncherHooks:
    """
    Optional callbacks around lifecycle operations.

    Each may be sync or async. ``on_error`` receives an ErrorReport; the rest
    take no arguments. A failing hook is logged and does not affect the
    operation.
    """

    before_start: Hook | None = None
    after_start: Hook | None = None
    before_close: Hook | None = None
    after_close: Hook | None = None
    before_build: Hook | None = None
    after_build: Hook | None = None
    before_preview: Hook | None = None
    after_preview: Hook | None = None
    on_error: Hook | None = None


class LifecycleCoordinator:
    """
    Coordinates detection, plugin resolution and the build engine.

    Example:
        coordinator = LifecycleCoordinator(Path("."))
        await coordinator.start_dev()
        await coordinator.watch()
        ...
        await coordinator.dispose()
    """

    def __init__(
        self,
        project_root: Path | str = ".",
        *,
        config: dict[str, Any] | None = None,
        config_source: ConfigSource | None = None,
        engine: BuildEngine | None = None,
        detection: DetectionEngine | None = None,
        plugins: PluginResolver | None = None,
        notifier: NotificationChannel | None = None,
        hooks: LauncherHooks | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            project_root: Project directory
            config: Programmatic overrides layered over the loaded file config
            config_source: Where configuration is loaded from
            engine: Build engine (defaults to CommandEngine)
            detection: Framework detection engine
            plugins: Adapter plugin resolver
            notifier: Channel for pushing messages to connected clients
            hooks: Lifecycle hooks
        """
        self.project_root = Path(project_root).resolve()
        self.source = config_source or ConfigSource(self.project_root)
        self.engine = engine or CommandEngine(self.project_root)
        self.detection = detection or DetectionEngine(disk_cache=DetectionCache())
        self.plugins = plugins or PluginResolver(self.project_root)
        self.notifier = notifier or ClientBroadcast()
        self.hooks = hooks or LauncherHooks()
        self.events = EventBus()
        self.stats = LauncherStats()

        self._overrides = clone_config(config or {})
        self._config = merge_config(default_config(), self._overrides)
        self._state = LifecycleState.IDLE
        self._initialized = False
        self._init_flight: asyncio.Future | None = None
        self._dev_server: DevServerHandle | None = None
        self._preview_server: PreviewHandle | None = None
        self._watcher: ConfigWatcher | None = None
        # held by every operation that starts or stops a server or builds
        self._operation_lock = asyncio.Lock()
        self.scheduler = RestartScheduler(self.restart_with_config, self._debounce_seconds())

    # State

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def config(self) -> dict[str, Any]:
        """Snapshot of the current configuration."""
        return clone_config(self._config)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def dev_server(self) -> DevServerHandle | None:
        return self._dev_server

    @property
    def preview_server(self) -> PreviewHandle | None:
        return self._preview_server

    def subscribe(
        self, event: LauncherEvent | str, callback: Callable[[Any], Any], priority: int = 0
    ) -> Callable[[], None]:
        """Subscribe to a lifecycle event; returns an unsubscribe function."""
        return self.events.subscribe(event, callback, priority)

    def _transition(self, target: LifecycleState) -> None:
        """
        Move to ``target``, stamping activity and publishing status-change.

        Raises:
            LifecycleTransitionError: If the move is not in TRANSITIONS
        """
        previous = self._state
        if not _can_transition(previous, target):
            raise LifecycleTransitionError(
                f"Illegal lifecycle transition {previous.value} -> {target.value}"
            )
        self._set_state(target)

    def _set_state(self, target: LifecycleState) -> None:
        previous, self._state = self._state, target
        self.stats.last_activity = time.time()
        if previous is not target:
            self.events.publish(
                LauncherEvent.STATUS_CHANGE, StatusChange(previous.value, target.value)
            )

    def _debounce_seconds(self) -> float:
        return self._config["launcher"]["config_change_debounce"] / 1000

    # Initialization

    async def initialize(self) -> dict[str, Any]:
        """
        Load configuration once.

        Concurrent callers share one in-flight load and receive the same
        result. A failed load keeps the defaults and is retried by the next
        call.

        Returns:
            Snapshot of the configuration in effect
        """
        if self._initialized:
            return self.config

        if self._init_flight is None:
            self._init_flight = asyncio.ensure_future(self._initialize_once())
        return await asyncio.shield(self._init_flight)

    async def _initialize_once(self) -> dict[str, Any]:
        try:
            try:
                loaded = await asyncio.to_thread(self.source.load)
            except ConfigError as e:
                logger.warning("Failed to load configuration, using defaults: %s", e)
                self._config = merge_config(default_config(), self._overrides)
            else:
                self._config = merge_config(loaded, self._overrides)
                self._initialized = True

            self.scheduler.debounce = self._debounce_seconds()
            return self.config
        finally:
            self._init_flight = None

    # Config assembly

    async def assemble_config(
        self, stage: str, overrides: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Build the configuration handed to the engine for ``stage``.

        Aliases are filtered for the stage, the framework is detected (unless
        forced by ``launcher.framework``) and resolved adapter plugins are
        merged ahead of the user's own.
        """
        config = merge_config(self._config, overrides or {})
        config["resolve"]["alias"] = resolve_aliases(
            config["resolve"]["alias"], self.project_root, stage
        )

        explicit = config["launcher"]["framework"] or None
        detected = await self.detection.detect(self.project_root)
        resolved = await self.plugins.resolve(
            detected.framework_type, explicit_override=explicit
        )

        config["plugins"] = merge_plugins(config["plugins"], resolved)
        config["framework"] = {
            "type": explicit or detected.framework_type,
            "confidence": detected.confidence,
            "source": "config" if explicit else detected.source,
        }
        config["root"] = str(self.project_root)
        config["mode"] = "production" if stage == "build" else "development"
        return config

    # Dev server

    async def start_dev(
        self, overrides: dict[str, Any] | None = None, *, restart: bool = False
    ) -> DevServerHandle:
        """
        Start the dev server, replacing any running one.

        Args:
            overrides: Per-call config overrides
            restart: Suppress the startup banner (used by restarts)

        Returns:
            The listening server handle
        """
        await self.initialize()
        async with self._operation_lock:
            return await self._start_dev(overrides, restart)

    async def _start_dev(
        self, overrides: dict[str, Any] | None, restart: bool
    ) -> DevServerHandle:
        if self._dev_server is not None:
            await self._stop_dev()

        try:
            self._transition(LifecycleState.STARTING)
            await self._run_hook("before_start")

            config = await self.assemble_config("dev", overrides)
            server = await self.engine.create_dev_server(config)
            await server.listen()
            self._dev_server = server

            self.stats.start_count += 1
            self._transition(LifecycleState.RUNNING)
            self.events.publish(
                LauncherEvent.SERVER_READY,
                ServerReady("dev", getattr(server, "url", None), restart),
            )
            if not restart:
                logger.info(
                    "Dev server running at %s (%s)",
                    getattr(server, "url", "?"),
                    config["framework"]["type"],
                )
            await self._run_hook("after_start")
            return server
        except Exception as e:
            await self._handle_error(e, "start_dev")
            raise

    async def stop_dev(self) -> None:
        """Stop the dev server. Safe to call in any state; no server is a no-op."""
        async with self._operation_lock:
            await self._stop_dev()

    async def _stop_dev(self) -> None:
        server = self._dev_server
        if server is None:
            logger.debug("Dev server is not running")
            return

        try:
            self._transition(LifecycleState.STOPPING)
            await self._run_hook("before_close")
            try:
                await server.close()
            finally:
                self._dev_server = None
            self._transition(LifecycleState.STOPPED)
            await self._run_hook("after_close")
        except Exception as e:
            await self._handle_error(e, "stop_dev")
            raise

    async def restart_dev(self) -> DevServerHandle:
        """Restart the dev server with the current configuration."""
        await self.initialize()
        async with self._operation_lock:
            await self._stop_dev()
            return await self._start_dev(None, True)

    async def restart_with_config(self, config: dict[str, Any]) -> DevServerHandle:
        """
        Replace the configuration and restart the dev server.

        The new config replaces the stored one outright. Connected clients are
        told that launcher configuration changed. Waits for any running
        operation (a build, another start) to finish first.
        """
        async with self._operation_lock:
            await self._stop_dev()

            self._config = clone_config(config)
            self._initialized = True
            self.scheduler.debounce = self._debounce_seconds()

            server = await self._start_dev(None, True)
        logger.info(
            "Restarted with new configuration: %s", getattr(server, "url", "?")
        )
        await self._notify_clients(server)
        return server

    def handle_config_change(self, config: dict[str, Any]) -> bool:
        """
        Callback for the config watcher.

        Returns:
            False if the change was dropped (auto restart off or restart running)
        """
        if not config.get("launcher", {}).get("auto_restart", True):
            logger.info("Configuration changed; auto restart disabled")
            return False
        return self.scheduler.signal(config)

    async def watch(self, interval: float = 0.5) -> ConfigWatcher:
        """Start watching the config files for changes."""
        if self._watcher is None:
            self._watcher = ConfigWatcher(self.source, self.handle_config_change, interval)
        await self._watcher.start()
        return self._watcher

    async def _notify_clients(self, server: DevServerHandle) -> None:
        channel = getattr(server, "notifier", None) or self.notifier
        try:
            await channel.send(
                CONFIG_UPDATED,
                {"timestamp": time.time(), "message": "Launcher configuration updated"},
            )
        except Exception as e:
            logger.warning("Failed to notify clients: %s", e)

    # Build and preview

    async def build(self, overrides: dict[str, Any] | None = None) -> Any:
        """Run a production build; returns the engine's build result."""
        await self.initialize()
        async with self._operation_lock:
            return await self._build(overrides)

    async def _build(self, overrides: dict[str, Any] | None) -> Any:
        started = time.monotonic()

        try:
            self._transition(LifecycleState.BUILDING)
            self.events.publish(LauncherEvent.BUILD_START, BuildStart())
            await self._run_hook("before_build")

            config = await self.assemble_config("build", overrides)
            result = await self.engine.build(config)
        except Exception as e:
            self.events.publish(
                LauncherEvent.BUILD_END, BuildEnd(False, time.monotonic() - started)
            )
            await self._handle_error(e, "build")
            raise

        duration = time.monotonic() - started
        self.stats.build_count += 1
        self.stats.total_build_time += duration
        self.events.publish(LauncherEvent.BUILD_END, BuildEnd(True, duration, result))
        await self._run_hook("after_build")
        # a hook may already have moved the state on
        if self._state is LifecycleState.BUILDING:
            self._transition(
                LifecycleState.RUNNING if self._dev_server else LifecycleState.IDLE
            )
        logger.info("Build finished in %.2fs", duration)
        return result

    async def preview(self, overrides: dict[str, Any] | None = None) -> PreviewHandle:
        """Serve the build output, replacing any running preview."""
        await self.initialize()
        async with self._operation_lock:
            if self._preview_server is not None:
                await self._stop_preview()
            return await self._preview(overrides)

    async def _preview(self, overrides: dict[str, Any] | None) -> PreviewHandle:
        try:
            self._transition(LifecycleState.PREVIEWING)
            await self._run_hook("before_preview")

            config = await self.assemble_config("preview", overrides)
            server = await self.engine.preview(config)
            self._preview_server = server

            self.events.publish(
                LauncherEvent.SERVER_READY,
                ServerReady("preview", getattr(server, "url", None)),
            )
            logger.info("Preview server running at %s", getattr(server, "url", "?"))
            await self._run_hook("after_preview")
            return server
        except Exception as e:
            await self._handle_error(e, "preview")
            raise

    async def stop_preview(self) -> None:
        """Stop the preview server if one is running."""
        async with self._operation_lock:
            await self._stop_preview()

    async def _stop_preview(self) -> None:
        server = self._preview_server
        if server is None:
            return

        try:
            try:
                await server.close()
            finally:
                self._preview_server = None
            if self._state is LifecycleState.PREVIEWING:
                self._transition(
                    LifecycleState.RUNNING if self._dev_server else LifecycleState.IDLE
                )
        except Exception as e:
            await self._handle_error(e, "stop_preview")
            raise

    # Errors and hooks

    async def _handle_error(self, error: Exception, operation: str) -> None:
        self.stats.error_count += 1
        self._set_state(LifecycleState.ERROR)

        severity = getattr(error, "severity", None)
        if not isinstance(severity, ErrorSeverity):
            severity = ErrorSeverity.HIGH
        report = ErrorReport(
            operation=operation,
            error=error,
            severity=severity.name.lower(),
            error_count=self.stats.error_count,
        )
        logger.error("%s failed: %s", operation, error)
        self.events.publish(LauncherEvent.ERROR, report)
        await self._run_hook("on_error", report)

        launcher = self._config["launcher"]
        if launcher["exit_on_error"] and severity >= ErrorSeverity.parse(
            launcher["exit_severity"]
        ):
            logger.critical("Exiting after %s error in %s", severity.name.lower(), operation)
            sys.exit(1)

    async def _run_hook(self, name: str, *args: Any) -> None:
        hook = getattr(self.hooks, name)
        if hook is None:
            return
        try:
            result = hook(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning("Hook %s failed: %s", name, e)

    # Teardown

    async def dispose(self) -> None:
        """Stop servers, the watcher and pending restarts, and drop caches."""
        self.scheduler.cancel()
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

        for stop in (self.stop_preview, self.stop_dev):
            try:
                await stop()
            except Exception as e:
                logger.warning("Error during dispose: %s", e)

        if self._init_flight is not None:
            self._init_flight.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._init_flight
            self._init_flight = None

        self.detection.clear_cache()
        self.plugins.clear_cache()
        self._initialized = False
        self._set_state(LifecycleState.IDLE)
