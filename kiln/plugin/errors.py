"""Plugin resolution errors. All are recovered inside PluginResolver."""


class PluginResolutionFailure(Exception):
    """Base exception for plugin resolution errors."""

    pass


class PackageNotFound(PluginResolutionFailure):
    """Raised when no node_modules directory on the lookup chain has the package."""

    pass


class ExportMapIncompatible(PluginResolutionFailure):
    """Raised when an export map exposes no condition the primary strategy accepts."""

    pass


class EntryNotFound(PluginResolutionFailure):
    """Raised when no entry file can be derived or the derived file is missing."""

    pass


class LoaderError(PluginResolutionFailure):
    """Raised when an entry file cannot be executed as a module."""

    pass
