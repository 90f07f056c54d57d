"""
Launcher configuration loading.

This module locates a project's config file, layers an optional
environment-specific file on top, validates the typed sections and fills in
defaults.

Key features:
- Lookup order: explicit path, ``.kiln/launcher.toml``, ``kiln.toml``
- Environment overlays (``.kiln/launcher.<env>.toml``, ``kiln.<env>.toml``)
- Policy-table merge (see kiln.config.merge)
- Default file generation with commented fields
"""

import logging
from pathlib import Path
from typing import Any

from kiln.config.merge import clone_config, merge_config
from kiln.config.schema import (
    SECTION_SCHEMAS,
    ValidationError,
    generate_default_config,
    validate_section,
)
from kiln.config.toml_handler import TOMLError, generate_toml_from_schema, read_toml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".kiln"
BASE_CANDIDATES = (f"{CONFIG_DIR}/launcher.toml", "kiln.toml")


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


def default_config() -> dict[str, Any]:
    """Return a fresh configuration containing only defaults."""
    config: dict[str, Any] = {
        section: generate_default_config(schema)
        for section, schema in SECTION_SCHEMAS.items()
    }
    config["resolve"] = {"alias": []}
    config["plugins"] = []
    return config


def normalize_config(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Validate typed sections and merge them onto the defaults.

    Args:
        raw: Configuration as read from disk or passed programmatically

    Returns:
        Complete configuration

    Raises:
        ConfigError: If a section fails validation
    """
    config = merge_config(default_config(), raw)
    try:
        for section, schema in SECTION_SCHEMAS.items():
            config[section] = validate_section(section, config[section], schema)
    except ValidationError as e:
        raise ConfigError(str(e)) from e

    if not isinstance(config["resolve"].get("alias", []), list):
        raise ConfigError("resolve.alias must be an array")
    if not isinstance(config["plugins"], list):
        raise ConfigError("plugins must be an array")

    return config


class ConfigSource:
    """
    Loads the launcher configuration for one project.

    Example:
        source = ConfigSource(Path("."), environment="staging")
        config = source.load()
    """

    def __init__(
        self,
        project_root: Path,
        environment: str | None = None,
        path: Path | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.environment = environment
        self.explicit_path = Path(path) if path is not None else None

    def base_path(self) -> Path | None:
        """Return the base config file in use, if any."""
        if self.explicit_path is not None:
            path = self.explicit_path
            if not path.is_absolute():
                path = self.project_root / path
            return path

        for candidate in BASE_CANDIDATES:
            path = self.project_root / candidate
            if path.is_file():
                return path
        return None

    def overlay_path(self) -> Path | None:
        """Return the environment overlay file, if one exists."""
        if not self.environment:
            return None

        for candidate in (
            f"{CONFIG_DIR}/launcher.{self.environment}.toml",
            f"kiln.{self.environment}.toml",
        ):
            path = self.project_root / candidate
            if path.is_file():
                return path
        return None

    def watch_paths(self) -> list[Path]:
        """Files whose modification should trigger a reload."""
        paths = []
        if self.explicit_path is not None:
            paths.append(self.base_path())
        else:
            paths.extend(self.project_root / candidate for candidate in BASE_CANDIDATES)
        if self.environment:
            paths.append(self.project_root / CONFIG_DIR / f"launcher.{self.environment}.toml")
            paths.append(self.project_root / f"kiln.{self.environment}.toml")
        return paths

    def load(self) -> dict[str, Any]:
        """
        Load, merge and validate configuration.

        Returns:
            Complete configuration (defaults when no file exists)

        Raises:
            ConfigError: If a file cannot be parsed or fails validation
        """
        raw: dict[str, Any] = {}

        base = self.base_path()
        if base is not None:
            raw = self._read(base)
            logger.debug("Loaded config from %s", base)
        elif self.explicit_path is not None:
            raise ConfigError(f"Config file not found: {self.explicit_path}")

        overlay = self.overlay_path()
        if overlay is not None:
            raw = merge_config(raw, self._read(overlay))
            logger.debug("Applied %s overlay from %s", self.environment, overlay)

        return normalize_config(raw)

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            return read_toml(path)
        except TOMLError as e:
            raise ConfigError(str(e)) from e


def render_default_config(values: dict[str, Any] | None = None) -> str:
    """Render a commented default config file."""
    config = clone_config(values) if values else default_config()
    return generate_toml_from_schema(
        SECTION_SCHEMAS,
        {section: config.get(section, {}) for section in SECTION_SCHEMAS},
        header="kiln launcher configuration",
    )
