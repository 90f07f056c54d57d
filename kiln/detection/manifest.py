"""
Package manifest reader.

Reads a project's ``package.json`` and collapses its dependency sections into
one name -> version-range mapping. A missing or empty manifest is an empty
mapping, not an error.
"""

import asyncio
import json
from pathlib import Path
from typing import Any


class DetectionFailure(Exception):
    """Base exception for detection errors. Always recovered by the engine."""

    pass


class ManifestError(DetectionFailure):
    """Raised when a manifest exists but cannot be parsed."""

    pass


MANIFEST_NAME = "package.json"

# Later sections do not override earlier ones
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


def read_manifest(project_root: Path) -> dict[str, Any]:
    """
    Parse ``package.json`` in ``project_root``.

    Returns:
        The manifest, or an empty dict if it is missing or blank

    Raises:
        ManifestError: If the file exists but is not a JSON object
    """
    path = Path(project_root) / MANIFEST_NAME
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}") from e

    if not text.strip():
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object")
    return data


def dependency_map(manifest: dict[str, Any]) -> dict[str, str]:
    """Merge the dependency sections of a parsed manifest."""
    deps: dict[str, str] = {}
    for section in DEPENDENCY_SECTIONS:
        entries = manifest.get(section)
        if not isinstance(entries, dict):
            continue
        for name, version in entries.items():
            deps.setdefault(name, str(version))
    return deps


def read_dependencies(project_root: Path) -> dict[str, str]:
    """Read the dependency map of ``project_root``."""
    return dependency_map(read_manifest(project_root))


async def load_dependencies(project_root: Path) -> dict[str, str]:
    """Async wrapper around read_dependencies."""
    return await asyncio.to_thread(read_dependencies, project_root)
