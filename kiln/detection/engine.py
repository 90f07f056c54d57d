"""
Framework Detection Engine.

This module decides which UI framework a project uses.

Key features:
- In-process and disk caches keyed by absolute project root
- Evaluate-all-then-rank over dependency rules (confidence, then priority)
- Bounded file-pattern fallback over ``src/``
- Never raises: failures degrade to the default framework
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from kiln.detection.cache import DetectionCache
from kiln.detection.detectors import (
    DEFAULT_DETECTORS,
    FILE_SIGNAL_CONFIDENCE,
    DetectionResult,
    FrameworkDetector,
)
from kiln.detection.manifest import ManifestError, read_dependencies
from kiln.detection.scanner import FileScanner

logger = logging.getLogger(__name__)


class ProjectSignals:
    """
    Read-only snapshot of one project root.

    Dependencies are read eagerly; file pattern matches are computed on first
    query and memoized per pattern set.
    """

    def __init__(
        self, project_root: Path, dependencies: Mapping[str, str], scanner: FileScanner
    ):
        self.project_root = project_root
        self.dependencies = MappingProxyType(dict(dependencies))
        self._scanner = scanner
        self._matches: dict[tuple[str, ...], bool] = {}

    @classmethod
    async def collect(
        cls, project_root: Path, scanner: FileScanner
    ) -> "ProjectSignals":
        """Read the manifest of ``project_root``; an unreadable one is treated as empty."""
        try:
            deps = await asyncio.to_thread(read_dependencies, project_root)
        except ManifestError as e:
            logger.warning("%s; treating dependencies as empty", e)
            deps = {}
        return cls(project_root, deps, scanner)

    @property
    def matched_patterns(self) -> frozenset[tuple[str, ...]]:
        return frozenset(key for key, hit in self._matches.items() if hit)

    async def matches(self, patterns: Iterable[str]) -> bool:
        key = tuple(patterns)
        if key not in self._matches:
            self._matches[key] = await self._scanner.has_match(self.project_root, key)
        return self._matches[key]


class DetectionEngine:
    """
    Detects a project's framework with caching.

    The in-memory cache lives on the instance; ``clear_cache`` empties it.
    """

    def __init__(
        self,
        detectors: Iterable[FrameworkDetector] = DEFAULT_DETECTORS,
        scanner: FileScanner | None = None,
        disk_cache: DetectionCache | None = None,
    ):
        self.detectors = tuple(detectors)
        self.scanner = scanner or FileScanner()
        self.disk_cache = disk_cache
        self._memory: dict[str, DetectionResult] = {}
        self._known = {d.framework_type for d in self.detectors}

    async def detect(self, project_root: Path, force: bool = False) -> DetectionResult:
        """
        Detect the framework of ``project_root``.

        Args:
            project_root: Project directory
            force: Skip both caches and overwrite them

        Returns:
            DetectionResult (the default type on any failure)
        """
        root = Path(project_root).resolve()
        key = str(root)

        if not force:
            cached = self._memory.get(key)
            if cached is not None:
                return cached

            try:
                cached = self._from_disk(root)
            except Exception as e:
                logger.warning("Ignoring detection cache for %s: %s", root, e)
                cached = None
            if cached is not None:
                logger.debug("Using cached detection for %s: %s", root, cached)
                self._memory[key] = cached
                return cached

        try:
            result = await self._evaluate(root)
        except Exception as e:
            logger.warning("Framework detection failed for %s: %s", root, e)
            return DetectionResult.default()

        self._memory[key] = result
        if self.disk_cache is not None:
            try:
                self.disk_cache.set(root, result)
            except Exception as e:
                logger.warning("Could not persist detection cache: %s", e)

        logger.info(
            "Detected framework %s (%s, confidence %.2f)",
            result.framework_type,
            result.source,
            result.confidence,
        )
        return result

    def clear_cache(self) -> None:
        """Forget in-memory results; the disk cache is untouched."""
        self._memory.clear()

    def _from_disk(self, root: Path) -> DetectionResult | None:
        if self.disk_cache is None:
            return None
        cached = self.disk_cache.get(root)
        if cached is None:
            return None
        if cached.framework_type not in self._known and cached.source != "default":
            return None
        return cached

    async def _evaluate(self, root: Path) -> DetectionResult:
        signals = await ProjectSignals.collect(root, self.scanner)

        by_dependency = self.rank_dependencies(signals.dependencies)
        if by_dependency is not None:
            return by_dependency

        by_files = await self._rank_files(signals)
        if by_files is not None:
            logger.debug(
                "File patterns matched under %s: %s", root, sorted(signals.matched_patterns)
            )
            return by_files

        return DetectionResult.default()

    def rank_dependencies(self, deps: Mapping[str, str]) -> DetectionResult | None:
        """
        Evaluate every dependency rule and pick the strongest match.

        Highest confidence wins, then highest priority, then registry order.
        """
        best: tuple[float, int, int] | None = None
        winner = None

        for order, detector in enumerate(self.detectors):
            detected, confidence = detector.dependency_rule(deps)
            if not detected:
                continue
            rank = (confidence, detector.priority, -order)
            if best is None or rank > best:
                best = rank
                winner = detector

        if winner is None:
            return None
        return DetectionResult(winner.framework_type, best[0], "dependency")

    async def _rank_files(self, signals: ProjectSignals) -> DetectionResult | None:
        # sorted() is stable, so equal ranks keep registry order
        candidates = sorted(
            (d for d in self.detectors if d.file_patterns),
            key=lambda d: -d.priority,
        )
        for detector in candidates:
            if await signals.matches(detector.file_patterns):
                return DetectionResult(
                    detector.framework_type, FILE_SIGNAL_CONFIDENCE, "file"
                )
        return None
