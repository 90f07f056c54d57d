"""
Dynamic Plugin Loader.

This module executes resolved adapter entry files as Python modules.

Key features:
- importlib integration for dynamic loading
- Per-instance module cache keyed by entry path
- Reload and unload support
"""

import importlib.util
import re
import sys
from pathlib import Path
from types import ModuleType

from kiln.plugin.errors import LoaderError

LOADABLE_SUFFIXES = (".py", ".pyc")


class ModuleLoader:
    """
    Loads entry files and caches the resulting modules.

    The cache belongs to the loader instance, so each coordinator gets its
    own and ``clear()`` drops everything it loaded.
    """

    def __init__(self, namespace: str = "kiln_plugin"):
        self.namespace = namespace
        self._cache: dict[Path, ModuleType] = {}

    def module_name(self, entry_path: Path, key: str) -> str:
        digest = abs(hash(str(entry_path))) % 10**8
        safe_key = re.sub(r"\W", "_", key)
        return f"{self.namespace}_{safe_key}_{digest}"

    def load(self, entry_path: Path, key: str) -> ModuleType:
        """
        Load a module from ``entry_path``.

        Args:
            entry_path: Resolved entry file
            key: Descriptor key, used in the module name

        Returns:
            Loaded module

        Raises:
            LoaderError: If the file is missing, not Python, or fails to execute
        """
        entry_path = Path(entry_path).resolve()

        if entry_path in self._cache:
            return self._cache[entry_path]

        if not entry_path.is_file():
            raise LoaderError(f"Entry point not found: {entry_path}")
        if entry_path.suffix not in LOADABLE_SUFFIXES:
            raise LoaderError(f"Entry point is not a Python module: {entry_path}")

        module_name = self.module_name(entry_path, key)
        try:
            spec = importlib.util.spec_from_file_location(module_name, entry_path)
            if spec is None or spec.loader is None:
                raise LoaderError(f"Failed to create module spec for {entry_path}")

            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except LoaderError:
            sys.modules.pop(module_name, None)
            raise
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoaderError(f"Failed to load plugin module {entry_path}: {e}") from e

        self._cache[entry_path] = module
        return module

    def reload(self, entry_path: Path, key: str) -> ModuleType:
        """Unload then load ``entry_path`` again."""
        self.unload(entry_path)
        return self.load(entry_path, key)

    def unload(self, entry_path: Path) -> None:
        module = self._cache.pop(Path(entry_path).resolve(), None)
        if module is not None:
            sys.modules.pop(module.__name__, None)

    def is_cached(self, entry_path: Path) -> bool:
        return Path(entry_path).resolve() in self._cache

    def clear(self) -> None:
        """Unload every cached module."""
        for entry_path in list(self._cache):
            self.unload(entry_path)
