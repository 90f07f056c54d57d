"""
Framework Plugin Resolver.

This module turns a framework type into instantiated adapter plugins.

Key features:
- Descriptor table lookup with explicit override and aliases
- Resolution in the consuming project's package tree
- Optional companions loaded only when the project declares them
- Never raises: missing required plugins warn, missing optional ones log at info
"""

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

from kiln.detection.manifest import ManifestError, load_dependencies
from kiln.plugin.assembly import AssembledPlugin, ResolvedPluginModule, assemble
from kiln.plugin.descriptors import (
    FRAMEWORK_PLUGINS,
    PLUGIN_DESCRIPTORS,
    PluginDescriptor,
    descriptors_for,
    normalize_framework,
)
from kiln.plugin.errors import PluginResolutionFailure
from kiln.plugin.loader import ModuleLoader
from kiln.plugin.packages import PackageResolver

logger = logging.getLogger(__name__)


class PluginResolver:
    """
    Resolves, loads and assembles adapter plugins for one project.

    Example:
        resolver = PluginResolver(Path("/work/app"))
        plugins = await resolver.resolve("vue3")
    """

    def __init__(
        self,
        project_root: Path,
        loader: ModuleLoader | None = None,
        descriptors: dict[str, PluginDescriptor] | None = None,
        framework_plugins: dict[str, tuple[str, ...]] | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.packages = PackageResolver(self.project_root)
        self.loader = loader or ModuleLoader()
        self.descriptors = descriptors or PLUGIN_DESCRIPTORS
        self.framework_plugins = framework_plugins or FRAMEWORK_PLUGINS

    async def resolve(
        self,
        framework_type: str,
        explicit_override: str | None = None,
        dependencies: Mapping[str, str] | None = None,
    ) -> list[AssembledPlugin]:
        """
        Resolve the adapter plugins for a framework.

        Args:
            framework_type: Detected framework type
            explicit_override: Framework forced by configuration
            dependencies: Project dependency map (read from disk if omitted)

        Returns:
            Assembled plugins in descriptor order; empty when nothing resolved
        """
        target = normalize_framework(explicit_override or framework_type)
        descriptors = descriptors_for(target, self.descriptors, self.framework_plugins)
        if descriptors is None:
            logger.warning("Unknown framework type '%s'; no adapter plugins", target)
            return []

        if dependencies is None and any(d.when_dependency for d in descriptors):
            dependencies = await self._dependencies()

        plugins: list[AssembledPlugin] = []
        for descriptor in descriptors:
            if descriptor.when_dependency and descriptor.when_dependency not in (
                dependencies or {}
            ):
                continue
            plugins.extend(await self._resolve_descriptor(descriptor))

        logger.debug(
            "Resolved %d plugin(s) for %s: %s",
            len(plugins),
            target,
            [p.name for p in plugins],
        )
        return plugins

    def clear_cache(self) -> None:
        self.loader.clear()

    async def _dependencies(self) -> dict[str, str]:
        try:
            return await load_dependencies(self.project_root)
        except ManifestError as e:
            logger.warning("%s; optional adapters skipped", e)
            return {}

    def _load(self, descriptor: PluginDescriptor) -> ResolvedPluginModule:
        entry_path = self.packages.resolve(descriptor.package_name)
        module = self.loader.load(entry_path, descriptor.key)
        return ResolvedPluginModule(module, entry_path, descriptor)

    async def _resolve_descriptor(
        self, descriptor: PluginDescriptor
    ) -> list[AssembledPlugin]:
        try:
            resolved = await asyncio.to_thread(self._load, descriptor)
            return assemble(resolved)
        except PluginResolutionFailure as e:
            self._report(descriptor, str(e))
        except Exception as e:
            self._report(descriptor, f"adapter factory failed: {e}")
        return []

    def _report(self, descriptor: PluginDescriptor, reason: str) -> None:
        if descriptor.required:
            logger.warning(
                "Required plugin %s unavailable (%s); continuing without it",
                descriptor.package_name,
                reason,
            )
        else:
            logger.info(
                "Optional plugin %s not loaded: %s", descriptor.package_name, reason
            )
