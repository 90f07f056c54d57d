"""
Shared helpers for kiln commands.
"""

import asyncio
from pathlib import Path
from typing import Any

from kiln.config import ConfigSource
from kiln.core import LifecycleCoordinator
from kiln.log import setup_logging
from kilnctl.cli import KilnctlError


async def prepare_coordinator(args: Any) -> LifecycleCoordinator:
    """
    Build a coordinator from CLI arguments and load its configuration.

    The config file's ``launcher.log_level`` applies unless a level was
    given on the command line.
    """
    root = Path(args.root).resolve()
    source = ConfigSource(root, environment=args.env, path=args.config)
    coordinator = LifecycleCoordinator(root, config_source=source)

    config = await coordinator.initialize()
    if not coordinator.initialized:
        raise KilnctlError(f"Could not load configuration from {root}")
    if not args.verbose and args.log_level is None:
        setup_logging(config["launcher"]["log_level"])
    return coordinator


async def wait_forever() -> None:
    """Block until cancelled (Ctrl-C)."""
    await asyncio.Event().wait()
