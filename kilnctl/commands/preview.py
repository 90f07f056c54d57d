"""
kiln preview command.

Serve the build output until interrupted.
"""

import asyncio
from typing import Any

from kilnctl.commands import prepare_coordinator, wait_forever


def preview_command(args: Any) -> int:
    """Execute preview command; returns the exit code."""
    return asyncio.run(preview_async(args))


async def preview_async(args: Any) -> int:
    coordinator = await prepare_coordinator(args)
    try:
        server = await coordinator.preview()
        print(f"Preview server: {getattr(server, 'url', '?')}")
        await wait_forever()
    finally:
        await coordinator.dispose()
    return 0
