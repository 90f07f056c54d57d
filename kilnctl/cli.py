"""
kiln CLI - front-end project launcher.

Usage:
    kiln dev [--root DIR] [--env NAME] [--config FILE] [--no-watch]
    kiln build [--root DIR] [--env NAME] [--config FILE]
    kiln preview [--root DIR] [--env NAME] [--config FILE]
    kiln detect [--root DIR] [--force] [--plugins]
    kiln config init [--root DIR] [--force]
"""

import argparse
import sys

from kiln.config import ConfigError
from kiln.core import LifecycleError
from kiln.engine import EngineError
from kiln.log import LEVELS, setup_logging


class KilnctlError(Exception):
    """Base exception for CLI errors."""

    pass


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", default=".", help="Project root (default: .)")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    common.add_argument(
        "--log-level", choices=sorted(LEVELS), help="Override launcher.log_level"
    )
    return common


def _config_options() -> argparse.ArgumentParser:
    options = argparse.ArgumentParser(add_help=False)
    options.add_argument("-e", "--env", help="Environment overlay to apply")
    options.add_argument("-c", "--config", help="Explicit config file")
    return options


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kiln", description="kiln - front-end project launcher"
    )
    common = _common_options()
    config_opts = _config_options()
    sub = parser.add_subparsers(dest="command")

    dev = sub.add_parser(
        "dev", parents=[common, config_opts], help="Start the dev server"
    )
    dev.add_argument(
        "--no-watch", action="store_true", help="Do not restart on config changes"
    )

    sub.add_parser("build", parents=[common, config_opts], help="Production build")
    sub.add_parser("preview", parents=[common, config_opts], help="Serve build output")

    detect = sub.add_parser("detect", parents=[common], help="Show detected framework")
    detect.add_argument("--force", action="store_true", help="Ignore cached results")
    detect.add_argument(
        "--plugins", action="store_true", help="Also resolve adapter plugins"
    )

    config = sub.add_parser("config", help="Manage the config file")
    config_sub = config.add_subparsers(dest="config_command")
    init = config_sub.add_parser(
        "init", parents=[common], help="Write a default .kiln/launcher.toml"
    )
    init.add_argument("--force", action="store_true", help="Overwrite existing file")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the kiln CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None or (
        args.command == "config" and args.config_command is None
    ):
        parser.print_help()
        return 0

    setup_logging("debug" if args.verbose else (args.log_level or "info"))

    try:
        if args.command == "dev":
            from kilnctl.commands.dev import dev_command

            return dev_command(args)

        elif args.command == "build":
            from kilnctl.commands.build import build_command

            return build_command(args)

        elif args.command == "preview":
            from kilnctl.commands.preview import preview_command

            return preview_command(args)

        elif args.command == "detect":
            from kilnctl.commands.detect import detect_command

            return detect_command(args)

        elif args.command == "config":
            from kilnctl.commands.config import init_command

            return init_command(args)

    except (KilnctlError, ConfigError, LifecycleError, EngineError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
