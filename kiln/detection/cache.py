"""
Disk-backed detection cache.

One TOML file maps absolute project roots to their last detection result.
Every operation is best-effort: read or write problems are logged and
treated as a cache miss.
"""

import logging
import os
import time
from pathlib import Path

import tomlkit

from kiln.config.toml_handler import TOMLError, read_toml, write_toml
from kiln.detection.detectors import DetectionResult

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "KILN_CACHE_DIR"
CACHE_FILE = "detection.toml"


def default_cache_path() -> Path:
    """``$KILN_CACHE_DIR/detection.toml`` or ``~/.cache/kiln/detection.toml``."""
    base = os.environ.get(CACHE_DIR_ENV)
    root = Path(base) if base else Path.home() / ".cache" / "kiln"
    return root / CACHE_FILE


class DetectionCache:
    """Persisted ``project_root -> DetectionResult`` store."""

    def __init__(self, path: Path | None = None):
        self.path = path or default_cache_path()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            projects = read_toml(self.path).get("projects", {})
        except TOMLError as e:
            logger.debug("Ignoring unreadable detection cache: %s", e)
            return {}
        if not isinstance(projects, dict):
            logger.debug("Ignoring malformed detection cache %s", self.path)
            return {}
        return projects

    def get(self, project_root: Path) -> DetectionResult | None:
        """Return the cached result for ``project_root``, if any."""
        entry = self._load().get(str(Path(project_root).resolve()))
        if not isinstance(entry, dict) or not entry.get("framework_type"):
            return None

        source = entry.get("source", "dependency")
        if source not in ("dependency", "file", "default"):
            return None
        try:
            confidence = float(entry.get("confidence", 0.0))
        except (TypeError, ValueError):
            return None
        return DetectionResult(entry["framework_type"], confidence, source)

    def set(self, project_root: Path, result: DetectionResult) -> None:
        """Store ``result`` for ``project_root``; failures are logged only."""
        projects = self._load()
        projects[str(Path(project_root).resolve())] = {
            "framework_type": result.framework_type,
            "confidence": result.confidence,
            "source": result.source,
            "written_at": time.time(),
        }
        self._write(projects)

    def invalidate(self, project_root: Path) -> None:
        """Drop the entry for ``project_root``."""
        projects = self._load()
        if projects.pop(str(Path(project_root).resolve()), None) is not None:
            self._write(projects)

    def _write(self, projects: dict) -> None:
        doc = tomlkit.document()
        doc.add(tomlkit.comment("kiln framework detection cache"))
        doc.add("projects", projects)
        try:
            write_toml(self.path, doc)
        except TOMLError as e:
            logger.warning("Could not persist detection cache: %s", e)
