"""
Restart scheduling for config hot-reload.

A three-phase state machine replaces the usual "debounce timer plus
is-restarting flag" pair:

    IDLE --signal--> DEBOUNCING --timer--> RESTARTING --done--> IDLE
                     DEBOUNCING --signal--> DEBOUNCING (timer re-armed)
                     RESTARTING --signal--> RESTARTING (signal dropped)

Only the config carried by the last signal before the timer fires is used.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class RestartRaceRejected(Exception):
    """A config change arrived while a restart was running and was dropped."""

    pass


class RestartPhase(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RESTARTING = "restarting"


@dataclass(frozen=True)
class RestartSignal:
    config: dict[str, Any]
    arrived_at: float = field(default_factory=time.monotonic)


class RestartScheduler:
    """
    Coalesces config-change signals into at most one running restart.

    Attributes:
        debounce: Seconds a signal must stay unchallenged before firing
        restart_count: Restarts started so far
        rejected: Signals dropped while restarting
    """

    def __init__(
        self,
        on_restart: Callable[[dict[str, Any]], Awaitable[Any]],
        debounce: float = 0.2,
    ):
        self.on_restart = on_restart
        self.debounce = debounce
        self.restart_count = 0
        self.rejected = 0
        self.last_rejection: RestartRaceRejected | None = None
        self._phase = RestartPhase.IDLE
        self._pending: RestartSignal | None = None
        self._task: asyncio.Task | None = None

    @property
    def phase(self) -> RestartPhase:
        return self._phase

    def signal(self, config: dict[str, Any]) -> bool:
        """
        Offer a new configuration. Must be called from the event loop.

        Returns:
            False if the signal was dropped because a restart is running
        """
        if self._phase is RestartPhase.RESTARTING:
            self.rejected += 1
            self.last_rejection = RestartRaceRejected(
                "Config change ignored: a restart is already in progress"
            )
            logger.debug("%s", self.last_rejection)
            return False

        self._pending = RestartSignal(config)
        if self._task is not None:
            self._task.cancel()
        self._phase = RestartPhase.DEBOUNCING
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    async def _run(self) -> None:
        await asyncio.sleep(self.debounce)

        pending, self._pending = self._pending, None
        self._phase = RestartPhase.RESTARTING
        self.restart_count += 1
        try:
            await self.on_restart(pending.config)
        except Exception as e:
            logger.error("Restart after config change failed: %s", e)
        finally:
            self._phase = RestartPhase.IDLE
            if self._task is asyncio.current_task():
                self._task = None

    async def wait_idle(self) -> None:
        """Wait until no debounce or restart is outstanding."""
        while self._task is not None:
            task = self._task
            await asyncio.wait({task})
            if self._task is task:
                self._task = None
        self._phase = RestartPhase.IDLE

    def cancel(self) -> None:
        """Drop any pending signal and cancel a debounce or running restart."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._pending = None
        self._phase = RestartPhase.IDLE
