"""
Plugin normalization and merging.

A loaded adapter module is classified once into a PluginExport (default
factory, named factory or direct value), instantiated, flattened and named.
The result is merged with the user's own plugins, user plugins winning on
name collisions.
"""

import contextlib
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any

from kiln.plugin.descriptors import PluginDescriptor
from kiln.plugin.errors import LoaderError


class ExportShape(Enum):
    """How an adapter module exposes its plugin."""

    DEFAULT_FACTORY = "default_factory"
    NAMED_FACTORY = "named_factory"
    DIRECT_VALUE = "direct_value"


@dataclass(frozen=True)
class PluginExport:
    """
    Tagged export of an adapter module.

    Attributes:
        shape: Which export form the module uses
        value: The factory or the plugin value itself
    """

    shape: ExportShape
    value: Any

    @classmethod
    def from_module(cls, module: ModuleType, import_name: str | None) -> "PluginExport":
        """
        Classify ``module``: default callable, then named callable, then a value.

        Raises:
            LoaderError: If the module exposes nothing usable
        """
        default = getattr(module, "default", None)
        if callable(default):
            return cls(ExportShape.DEFAULT_FACTORY, default)

        if import_name:
            named = getattr(module, import_name, None)
            if callable(named):
                return cls(ExportShape.NAMED_FACTORY, named)

        if default is not None:
            return cls(ExportShape.DIRECT_VALUE, default)
        value = getattr(module, "plugin", None)
        if value is not None:
            return cls(ExportShape.DIRECT_VALUE, value)

        raise LoaderError(f"Module {module.__name__} exports no plugin or factory")

    def instantiate(self, options: dict[str, Any]) -> list[Any]:
        """Call the factory (if any) with a copy of ``options`` and flatten the result."""
        if self.shape is ExportShape.DIRECT_VALUE:
            return flatten_plugins(self.value)
        return flatten_plugins(self.value(dict(options)))


@dataclass
class ResolvedPluginModule:
    """Loaded adapter module; dropped once its plugins are assembled."""

    module: ModuleType
    entry_path: Path
    descriptor: PluginDescriptor


@dataclass
class AssembledPlugin:
    """
    Named plugin ready for merging.

    Attributes:
        name: Plugin name used for de-duplication
        handle: The plugin object handed to the build engine
    """

    name: str
    handle: Any


def flatten_plugins(value: Any) -> list[Any]:
    """Flatten nested lists/tuples of plugins, dropping None and False."""
    if value is None or value is False:
        return []
    if isinstance(value, (list, tuple)):
        flat = []
        for item in value:
            flat.extend(flatten_plugins(item))
        return flat
    return [value]


def plugin_name(plugin: Any) -> str | None:
    """Name of a plugin given as a mapping or an object with ``name``."""
    if isinstance(plugin, dict):
        name = plugin.get("name")
    else:
        name = getattr(plugin, "name", None)
    return name if isinstance(name, str) and name else None


def _with_name(plugin: Any, name: str) -> Any:
    if isinstance(plugin, dict):
        return {**plugin, "name": name}
    # immutable handles keep their AssembledPlugin name only
    with contextlib.suppress(AttributeError, TypeError):
        plugin.name = name
    return plugin


def assemble(resolved: ResolvedPluginModule) -> list[AssembledPlugin]:
    """
    Turn a loaded module into named plugins.

    Raises:
        LoaderError: If the module has no usable export
    """
    descriptor = resolved.descriptor
    export = PluginExport.from_module(resolved.module, descriptor.import_name)

    assembled = []
    for plugin in export.instantiate(descriptor.options):
        name = plugin_name(plugin)
        if name is None:
            name = descriptor.display_name
            plugin = _with_name(plugin, name)
        assembled.append(AssembledPlugin(name=name, handle=plugin))
    return assembled


def merge_plugins(
    user_plugins: Iterable[Any], resolved: Iterable[AssembledPlugin]
) -> list[Any]:
    """
    Combine auto-resolved plugins with user plugins.

    Resolved plugins go first, as a block in their original order, minus any
    whose name a user plugin (or an earlier resolved plugin) already uses.
    User plugins follow verbatim. The block is prepended as a whole; prepending
    one plugin at a time would reverse the resolved order.
    """
    user_plugins = list(user_plugins)
    taken = {name for name in map(plugin_name, user_plugins) if name}

    front = []
    for plugin in resolved:
        if plugin.name in taken:
            continue
        taken.add(plugin.name)
        front.append(plugin.handle)

    return front + user_plugins
