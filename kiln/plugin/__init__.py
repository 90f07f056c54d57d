"""
Framework adapter plugins.

Resolves adapter packages from a project's package tree, loads their entry
modules and normalizes what they export into named plugins.
"""

from kiln.plugin.assembly import (
    AssembledPlugin,
    ExportShape,
    PluginExport,
    ResolvedPluginModule,
    assemble,
    flatten_plugins,
    merge_plugins,
    plugin_name,
)
from kiln.plugin.descriptors import (
    FRAMEWORK_PLUGINS,
    PLUGIN_DESCRIPTORS,
    PluginDescriptor,
    normalize_framework,
)
from kiln.plugin.errors import (
    EntryNotFound,
    ExportMapIncompatible,
    LoaderError,
    PackageNotFound,
    PluginResolutionFailure,
)
from kiln.plugin.loader import ModuleLoader
from kiln.plugin.packages import PackageResolver
from kiln.plugin.resolver import PluginResolver

__all__ = [
    "FRAMEWORK_PLUGINS",
    "PLUGIN_DESCRIPTORS",
    "AssembledPlugin",
    "EntryNotFound",
    "ExportMapIncompatible",
    "ExportShape",
    "LoaderError",
    "ModuleLoader",
    "PackageNotFound",
    "PackageResolver",
    "PluginDescriptor",
    "PluginExport",
    "PluginResolutionFailure",
    "PluginResolver",
    "ResolvedPluginModule",
    "assemble",
    "flatten_plugins",
    "merge_plugins",
    "normalize_framework",
    "plugin_name",
]
