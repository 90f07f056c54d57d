"""
kiln dev command.

Start the dev server and restart it when the config file changes.
"""

import asyncio
from typing import Any

from kilnctl.commands import prepare_coordinator, wait_forever


def dev_command(args: Any) -> int:
    """
    Execute dev command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(dev_async(args))


async def dev_async(args: Any) -> int:
    coordinator = await prepare_coordinator(args)
    try:
        server = await coordinator.start_dev()
        print(f"Dev server: {getattr(server, 'url', '?')}")
        if not args.no_watch:
            await coordinator.watch()
        await wait_forever()
    finally:
        await coordinator.dispose()
    return 0
