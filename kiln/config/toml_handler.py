"""
TOML File I/O Handler.

Reads launcher configuration and the detection cache with tomllib and writes
them back with tomlkit so hand-written comments survive a round trip.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Write TOML files using tomlkit (preserves comments and formatting)
- Render a commented ``[section]`` from a ConfigField schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except ValueError as e:
        raise TOMLError(f"Failed to decode TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any]) -> None:
    """
    Write data to a TOML file using tomlkit.

    Args:
        file_path: Path to the TOML file
        data: Data to write (plain dict or tomlkit document)

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            tomlkit.dump(data, f)
    except (OSError, TypeError, ValueError) as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def add_schema_section(
    doc: tomlkit.TOMLDocument,
    section: str,
    schema: dict[str, Any],
    values: dict[str, Any] | None = None,
) -> None:
    """
    Append a commented table for ``schema`` to an existing document.

    Each field gets its description and constraints as comments above it.

    Args:
        doc: Document to extend
        section: Table name, e.g. ``launcher``
        schema: Schema dictionary (field_name -> ConfigField)
        values: Values overriding the schema defaults
    """
    values = values or {}
    table = tomlkit.table()

    for field_name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if field.choices is not None:
            constraints.append(f"choices: {', '.join(map(str, field.choices))}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {'; '.join(constraints)}"))

        table.add(field_name, values.get(field_name, field.default))

    doc.add(section, table)


def generate_toml_from_schema(
    sections: dict[str, dict[str, Any]],
    values: dict[str, dict[str, Any]] | None = None,
    header: str | None = None,
) -> str:
    """
    Render a complete commented config file from several schemas.

    Args:
        sections: Section name -> schema dictionary
        values: Section name -> values overriding the defaults
        header: Optional comment placed at the top of the file

    Returns:
        TOML string with comments
    """
    values = values or {}
    doc = tomlkit.document()

    if header:
        doc.add(tomlkit.comment(header))
        doc.add(tomlkit.nl())

    for section, schema in sections.items():
        add_schema_section(doc, section, schema, values.get(section))

    return tomlkit.dumps(doc)
