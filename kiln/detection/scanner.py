"""
Bounded file scanner.

Looks for files matching extension patterns under a project's source
directory. The walk is limited in depth, skips heavy directories and runs
under a global timeout; hitting the timeout means "not found".
"""

import asyncio
import fnmatch
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".hg",
        ".svn",
        "dist",
        "build",
        ".next",
        ".nuxt",
        "coverage",
    }
)


def _list_dir(directory: Path) -> list[tuple[str, bool]]:
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                entries.append((entry.name, entry.is_dir(follow_symlinks=False)))
            except OSError:
                continue
    return entries


def _basename_patterns(patterns: Iterable[str]) -> tuple[str, ...]:
    # "**/*.vue" and "*.vue" both mean "a file named *.vue anywhere"
    return tuple(pattern.rsplit("/", 1)[-1] for pattern in patterns)


class FileScanner:
    """
    Depth- and time-bounded scanner over ``<root>/<source_dir>``.

    Attributes:
        source_dir: Directory under the project root that is scanned
        max_depth: Deepest directory level visited (source_dir is level 0)
        timeout: Seconds allowed per call to ``has_match``
        skip_dirs: Directory names never entered
    """

    def __init__(
        self,
        source_dir: str = "src",
        max_depth: int = 3,
        timeout: float = 5.0,
        skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS,
    ):
        self.source_dir = source_dir
        self.max_depth = max_depth
        self.timeout = timeout
        self.skip_dirs = skip_dirs

    async def has_match(self, project_root: Path, patterns: Iterable[str]) -> bool:
        """
        Return True if any file under the source directory matches.

        Args:
            project_root: Project root directory
            patterns: Glob patterns such as ``*.vue`` or ``**/*.tsx``
        """
        names = _basename_patterns(patterns)
        if not names:
            return False

        start = Path(project_root) / self.source_dir
        try:
            return await asyncio.wait_for(self._walk(start, names, 0), self.timeout)
        except TimeoutError:
            logger.debug("Scan of %s for %s timed out", start, names)
            return False

    async def _walk(self, directory: Path, names: tuple[str, ...], depth: int) -> bool:
        if depth > self.max_depth:
            return False

        try:
            entries = await asyncio.to_thread(_list_dir, directory)
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return False

        subdirs = []
        for name, is_dir in entries:
            if is_dir:
                if name not in self.skip_dirs:
                    subdirs.append(directory / name)
            elif any(fnmatch.fnmatch(name, pattern) for pattern in names):
                return True

        for subdir in subdirs:
            if await self._walk(subdir, names, depth + 1):
                return True
        return False
