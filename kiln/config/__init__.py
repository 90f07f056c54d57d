"""
kiln Configuration System - TOML-based launcher configuration.

This package provides:
- Schema declaration and validation for the typed sections
- File lookup with environment overlays
- Policy-table merging
- A polling watcher that reports config edits

Example usage:
    from kiln.config import ConfigSource

    config = ConfigSource(Path("."), environment="staging").load()
    print(config["server"]["port"])
"""

from kiln.config.aliases import AliasError, builtin_aliases, resolve_aliases
from kiln.config.loader import (
    ConfigError,
    ConfigSource,
    default_config,
    normalize_config,
    render_default_config,
)
from kiln.config.merge import MergePolicy, clone_config, merge_config
from kiln.config.schema import ConfigField, SchemaError, ValidationError
from kiln.config.toml_handler import TOMLError, read_toml, write_toml
from kiln.config.watcher import ConfigWatcher

__all__ = [
    "AliasError",
    "ConfigError",
    "ConfigField",
    "ConfigSource",
    "ConfigWatcher",
    "MergePolicy",
    "SchemaError",
    "TOMLError",
    "ValidationError",
    "builtin_aliases",
    "clone_config",
    "default_config",
    "merge_config",
    "normalize_config",
    "read_toml",
    "render_default_config",
    "resolve_aliases",
    "write_toml",
]
