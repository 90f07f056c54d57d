"""
kiln - front-end project launcher.

Detects a project's UI framework, resolves the matching build-engine adapter
plugins from the project's own package tree, and coordinates the dev server,
production build and preview server around an external build engine.
"""

__version__ = "0.1.0"

from kiln.config import ConfigError, ConfigSource
from kiln.core import (
    LauncherEvent,
    LauncherHooks,
    LifecycleCoordinator,
    LifecycleError,
    LifecycleState,
    LifecycleTransitionError,
)
from kiln.detection import DetectionEngine, DetectionResult
from kiln.plugin import AssembledPlugin, PluginResolver, merge_plugins

__all__ = [
    "__version__",
    "AssembledPlugin",
    "ConfigError",
    "ConfigSource",
    "DetectionEngine",
    "DetectionResult",
    "LauncherEvent",
    "LauncherHooks",
    "LifecycleCoordinator",
    "LifecycleError",
    "LifecycleState",
    "LifecycleTransitionError",
    "PluginResolver",
    "merge_plugins",
]
