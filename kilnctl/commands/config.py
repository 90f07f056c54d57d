"""
kiln config command.

Write a commented default configuration file.
"""

from pathlib import Path
from typing import Any

from kiln.config import render_default_config
from kiln.config.loader import BASE_CANDIDATES
from kilnctl.cli import KilnctlError


def init_command(args: Any) -> int:
    """
    Write ``.kiln/launcher.toml`` under the project root.

    Raises:
        KilnctlError: If the file exists and ``--force`` was not given
    """
    path = Path(args.root).resolve() / BASE_CANDIDATES[0]
    if path.exists() and not args.force:
        raise KilnctlError(f"{path} already exists (use --force to overwrite)")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_default_config(), encoding="utf-8")
    print(f"Wrote {path}")
    return 0
