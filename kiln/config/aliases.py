"""
Path alias handling.

Built-in aliases (``@`` -> ``<root>/src``, ``~`` -> ``<root>``) are placed
before user aliases, then the list is filtered down to the current stage.
An alias without ``stages`` applies to the dev server only.
"""

from pathlib import Path
from typing import Any

STAGES = ("dev", "build", "preview")
DEFAULT_STAGES = ("dev",)


class AliasError(Exception):
    """Raised for malformed alias entries."""

    pass


def builtin_aliases(project_root: Path) -> list[dict[str, Any]]:
    """Aliases every project gets, active in all stages."""
    return [
        {"find": "@", "replacement": str(project_root / "src"), "stages": list(STAGES)},
        {"find": "~", "replacement": str(project_root), "stages": list(STAGES)},
    ]


def _normalize(entry: Any, project_root: Path) -> dict[str, Any]:
    if not isinstance(entry, dict) or "find" not in entry or "replacement" not in entry:
        raise AliasError(f"Alias entries need 'find' and 'replacement': {entry!r}")

    replacement = str(entry["replacement"])
    if replacement.startswith("."):
        replacement = str((project_root / replacement).resolve())

    stages = entry.get("stages") or DEFAULT_STAGES
    unknown = set(stages) - set(STAGES)
    if unknown:
        raise AliasError(f"Unknown alias stages {sorted(unknown)} for '{entry['find']}'")

    return {"find": entry["find"], "replacement": replacement, "stages": list(stages)}


def resolve_aliases(
    aliases: list[Any], project_root: Path, stage: str
) -> list[dict[str, str]]:
    """
    Build the alias list handed to the engine for one stage.

    Args:
        aliases: User aliases from ``[resolve].alias``
        project_root: Project root for relative replacements
        stage: ``dev``, ``build`` or ``preview``

    Returns:
        ``{find, replacement}`` entries, built-ins first

    Raises:
        AliasError: If an entry is malformed or the stage is unknown
    """
    if stage not in STAGES:
        raise AliasError(f"Unknown stage: {stage}")

    entries = builtin_aliases(project_root) + [
        _normalize(entry, project_root) for entry in aliases
    ]
    return [
        {"find": entry["find"], "replacement": entry["replacement"]}
        for entry in entries
        if stage in entry["stages"]
    ]
