"""
Config file watcher.

Polls the modification times of a ConfigSource's files and hands freshly
loaded configuration to a callback. A file that fails to load is reported and
skipped; the callback only ever sees valid configuration.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from kiln.config.loader import ConfigError, ConfigSource

logger = logging.getLogger(__name__)


class ConfigWatcher:
    """Poll-based watcher driving ``on_change(new_config)``."""

    def __init__(
        self,
        source: ConfigSource,
        on_change: Callable[[dict[str, Any]], Any],
        interval: float = 0.5,
    ):
        self.source = source
        self.on_change = on_change
        self.interval = interval
        self._snapshot: dict[Path, float | None] = {}
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _stat(self) -> dict[Path, float | None]:
        snapshot = {}
        for path in self.source.watch_paths():
            try:
                snapshot[path] = path.stat().st_mtime
            except OSError:
                snapshot[path] = None
        return snapshot

    async def start(self) -> None:
        """Start polling in the background."""
        if self.running:
            return
        self._snapshot = await asyncio.to_thread(self._stat)
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        """Stop polling."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def check(self) -> bool:
        """
        Compare file times once and fire the callback on change.

        Returns:
            True if a change was detected and valid config was delivered
        """
        current = await asyncio.to_thread(self._stat)
        if current == self._snapshot:
            return False
        self._snapshot = current

        try:
            config = await asyncio.to_thread(self.source.load)
        except ConfigError as e:
            logger.warning("Ignoring config change: %s", e)
            return False

        logger.info("Configuration changed")
        result = self.on_change(config)
        if inspect.isawaitable(result):
            await result
        return True

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.check()
            except Exception as e:
                logger.error("Config change handler failed: %s", e)
