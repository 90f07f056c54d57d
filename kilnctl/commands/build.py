"""
kiln build command.

Run a production build.
"""

import asyncio
from typing import Any

from kilnctl.commands import prepare_coordinator


def build_command(args: Any) -> int:
    """Execute build command; returns the exit code."""
    return asyncio.run(build_async(args))


async def build_async(args: Any) -> int:
    coordinator = await prepare_coordinator(args)
    try:
        result = await coordinator.build()
    finally:
        await coordinator.dispose()

    out_dir = getattr(result, "out_dir", None)
    if out_dir is not None:
        print(f"Built to {out_dir}")
    if args.verbose:
        stats = coordinator.stats
        print(f"Builds: {stats.build_count}, average {stats.average_build_time:.2f}s")
    return 0
