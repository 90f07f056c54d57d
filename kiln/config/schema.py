"""
Configuration Schema System.

This module declares the typed sections of a launcher config file and
validates loaded values against them.

Key features:
- Type-safe field definitions with constraints
- Per-section validation (unknown keys rejected, missing keys defaulted)
- Built-in schemas for the launcher, server, preview, build and engine sections
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


def _matches_type(value: Any, type_: type) -> bool:
    # bool is an int subclass; keep them apart
    if isinstance(value, bool) and type_ is not bool:
        return False
    if type_ is float:
        return isinstance(value, (int, float))
    return isinstance(value, type_)


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for strings/lists)
        max: Maximum value (for numbers) or maximum length (for strings/lists)
        choices: List of allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not _matches_type(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
            str,
            list,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str, list. Got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Raises:
            ValidationError: If validation fails
        """
        if not _matches_type(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        # Numbers are bounded by value, strings and lists by length
        measured = value if self.type_ in (int, float) else None
        if self.type_ in (str, list):
            measured = len(value)
        if measured is None:
            return

        if self.min is not None and measured < self.min:
            raise ValidationError(f"Value {value!r} is below minimum {self.min}")
        if self.max is not None and measured > self.max:
            raise ValidationError(f"Value {value!r} is above maximum {self.max}")


def validate_section(
    section: str, values: dict[str, Any], schema: dict[str, ConfigField]
) -> dict[str, Any]:
    """
    Validate one config section and fill in defaults for missing fields.

    Args:
        section: Section name (used in error messages)
        values: Values read from the config file
        schema: The schema dictionary (field_name -> ConfigField)

    Returns:
        A new dictionary with every schema field present

    Raises:
        ValidationError: On unknown fields or invalid values
    """
    if not isinstance(values, dict):
        raise ValidationError(f"[{section}] must be a table")

    for key in values:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {section}.{key}")

    result = {}
    for field_name, field in schema.items():
        if field_name not in values:
            result[field_name] = field.default
            continue
        try:
            field.validate(values[field_name])
        except ValidationError as e:
            raise ValidationError(f"Field '{section}.{field_name}': {e}") from e
        result[field_name] = values[field_name]

    return result


def generate_default_config(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Generate a default section from a schema."""
    return {field_name: field.default for field_name, field in schema.items()}


LAUNCHER_SCHEMA = {
    "log_level": ConfigField(
        str,
        "info",
        "Log verbosity",
        choices=["silent", "error", "warning", "info", "debug"],
    ),
    "config_change_debounce": ConfigField(
        int, 200, "Milliseconds to wait for config edits to settle", min=0, max=10000
    ),
    "auto_restart": ConfigField(
        bool, True, "Restart the dev server when this file changes"
    ),
    "exit_on_error": ConfigField(
        bool, False, "Exit the process when a lifecycle operation fails"
    ),
    "exit_severity": ConfigField(
        str,
        "high",
        "Minimum error severity that triggers exit_on_error",
        choices=["low", "medium", "high", "critical"],
    ),
    "framework": ConfigField(
        str, "", "Force a framework type instead of detecting it (empty = detect)"
    ),
}

SERVER_SCHEMA = {
    "host": ConfigField(str, "localhost", "Dev server host"),
    "port": ConfigField(int, 3000, "Dev server port", min=1, max=65535),
    "strict_port": ConfigField(
        bool, False, "Fail instead of picking the next free port"
    ),
}

PREVIEW_SCHEMA = {
    "host": ConfigField(str, "localhost", "Preview server host"),
    "port": ConfigField(int, 4173, "Preview server port", min=1, max=65535),
    "strict_port": ConfigField(
        bool, False, "Fail instead of picking the next free port"
    ),
}

BUILD_SCHEMA = {
    "out_dir": ConfigField(str, "dist", "Build output directory", min=1),
    "sourcemap": ConfigField(bool, False, "Emit source maps"),
}

ENGINE_SCHEMA = {
    "command": ConfigField(
        list, ["vite"], "Build engine command when no local binary is installed", min=1
    ),
    "ready_timeout": ConfigField(
        float, 30.0, "Seconds to wait for a server to answer", min=1.0, max=600.0
    ),
}

SECTION_SCHEMAS: dict[str, dict[str, ConfigField]] = {
    "launcher": LAUNCHER_SCHEMA,
    "server": SERVER_SCHEMA,
    "preview": PREVIEW_SCHEMA,
    "build": BUILD_SCHEMA,
    "engine": ENGINE_SCHEMA,
}
