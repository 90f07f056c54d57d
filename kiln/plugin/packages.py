"""
Package entry resolution.

Finds an adapter package in the consuming project's ``node_modules`` chain
and derives the file to load from its manifest.

Key features:
- Lookup from the project root up through each parent (workspace layouts)
- Scoped names and subpath specifiers (``@scope/pkg/sub``)
- Require-style primary resolution over ``exports``/``main``
- Manifest-driven fallback for export maps without require/default branches
"""

import json
import logging
from pathlib import Path
from typing import Any

from kiln.plugin.errors import EntryNotFound, ExportMapIncompatible, PackageNotFound

logger = logging.getLogger(__name__)

PRIMARY_CONDITIONS = ("require", "default")
FALLBACK_CONDITIONS = ("import", "default", "module", "require")
DEFAULT_MAIN = "index.py"


def split_specifier(specifier: str) -> tuple[str, str]:
    """
    Split a specifier into package name and export subpath.

    Example:
        split_specifier("@sveltejs/kit/vite") -> ("@sveltejs/kit", "./vite")
        split_specifier("vite-plugin-solid") -> ("vite-plugin-solid", ".")
    """
    parts = specifier.split("/")
    size = 2 if specifier.startswith("@") else 1
    if len(parts) < size or not all(parts[:size]):
        raise PackageNotFound(f"Invalid package specifier: {specifier!r}")
    name = "/".join(parts[:size])
    rest = "/".join(parts[size:])
    return name, f"./{rest}" if rest else "."


def _is_subpath_map(exports: dict[str, Any]) -> bool:
    return any(key.startswith(".") for key in exports)


def select_subpath(exports: Any, subpath: str) -> Any:
    """Return the export-map target for ``subpath``, or None."""
    if isinstance(exports, (str, list)):
        return exports if subpath == "." else None
    if not isinstance(exports, dict):
        return None
    if _is_subpath_map(exports):
        return exports.get(subpath)
    # a bare conditions object describes the root export only
    return exports if subpath == "." else None


def pick_condition(target: Any, conditions: tuple[str, ...]) -> str | None:
    """
    Unwrap nested condition branches in ``conditions`` order.

    Strings resolve to themselves; lists yield their first resolvable item.
    """
    if isinstance(target, str):
        return target
    if isinstance(target, list):
        for item in target:
            found = pick_condition(item, conditions)
            if found is not None:
                return found
        return None
    if isinstance(target, dict):
        for condition in conditions:
            if condition in target:
                found = pick_condition(target[condition], conditions)
                if found is not None:
                    return found
    return None


class PackageResolver:
    """
    Resolves package specifiers relative to a consuming project.

    Example:
        resolver = PackageResolver(Path("/work/app"))
        entry = resolver.resolve("@vitejs/plugin-vue")
    """

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()

    def search_paths(self) -> list[Path]:
        """``node_modules`` directories from the project root upwards."""
        return [d / "node_modules" for d in (self.project_root, *self.project_root.parents)]

    def find_package_dir(self, package_name: str) -> Path:
        """
        Locate an installed package.

        Raises:
            PackageNotFound: If no directory on the lookup chain has it
        """
        for modules_dir in self.search_paths():
            candidate = modules_dir / package_name
            if (candidate / "package.json").is_file():
                return candidate
        raise PackageNotFound(
            f"Package '{package_name}' not found from {self.project_root}"
        )

    def read_package_manifest(self, package_dir: Path) -> dict[str, Any]:
        path = package_dir / "package.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise EntryNotFound(f"Unreadable manifest {path}: {e}") from e
        if not isinstance(data, dict):
            raise EntryNotFound(f"Manifest {path} is not a JSON object")
        return data

    def resolve(self, specifier: str) -> Path:
        """
        Resolve ``specifier`` to an entry file.

        Returns:
            Absolute path of the entry file

        Raises:
            PackageNotFound: If the package is not installed
            EntryNotFound: If no entry can be derived or it does not exist
        """
        name, subpath = split_specifier(specifier)
        package_dir = self.find_package_dir(name)
        manifest = self.read_package_manifest(package_dir)

        try:
            entry = self.resolve_primary(manifest, subpath)
        except ExportMapIncompatible as e:
            logger.debug("%s; deriving entry from manifest", e)
            entry = self.resolve_fallback(manifest, subpath, specifier)

        path = (package_dir / entry).resolve()
        if not path.is_file():
            raise EntryNotFound(f"Entry '{entry}' of '{specifier}' does not exist")
        return path

    def resolve_primary(self, manifest: dict[str, Any], subpath: str) -> str:
        """
        Require-style resolution.

        Raises:
            ExportMapIncompatible: If the export map has no require/default branch
        """
        exports = manifest.get("exports")
        if exports is None:
            if subpath == ".":
                return manifest.get("main") or DEFAULT_MAIN
            return _legacy_subpath(subpath)

        target = select_subpath(exports, subpath)
        entry = pick_condition(target, PRIMARY_CONDITIONS) if target is not None else None
        if entry is None:
            raise ExportMapIncompatible(
                f"'{manifest.get('name', '?')}' exports no require/default entry for '{subpath}'"
            )
        return entry

    def resolve_fallback(
        self, manifest: dict[str, Any], subpath: str, specifier: str
    ) -> str:
        """
        Derive an entry straight from the manifest.

        Raises:
            EntryNotFound: If neither the export map nor ``main`` yields an entry
        """
        exports = manifest.get("exports")
        target = select_subpath(exports, subpath)
        if target is None and subpath == "." and isinstance(exports, dict):
            target = exports.get("default") or exports.get("import")

        entry = pick_condition(target, FALLBACK_CONDITIONS) if target is not None else None
        if entry is None and subpath == ".":
            entry = manifest.get("main")
        if not entry:
            raise EntryNotFound(f"No usable entry for '{specifier}'")
        return entry


def _legacy_subpath(subpath: str) -> str:
    relative = subpath[2:]
    return relative if Path(relative).suffix else f"{relative}.py"
