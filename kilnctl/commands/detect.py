"""
kiln detect command.

Print the detected framework and, optionally, the adapter plugins it
resolves to.
"""

import asyncio
from pathlib import Path
from typing import Any

from kiln.detection import DetectionCache, DetectionEngine
from kiln.plugin import PluginResolver


def detect_command(args: Any) -> int:
    """Execute detect command; returns the exit code."""
    return asyncio.run(detect_async(args))


async def detect_async(args: Any) -> int:
    root = Path(args.root).resolve()
    engine = DetectionEngine(disk_cache=DetectionCache())
    result = await engine.detect(root, force=args.force)

    print(f"framework:  {result.framework_type}")
    print(f"confidence: {result.confidence:.2f}")
    print(f"source:     {result.source}")

    if args.plugins:
        plugins = await PluginResolver(root).resolve(result.framework_type)
        if not plugins:
            print("plugins:    (none resolved)")
        for plugin in plugins:
            print(f"plugin:     {plugin.name}")
    return 0
