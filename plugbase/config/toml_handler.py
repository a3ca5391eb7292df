"""
TOML File I/O Handler.

This module provides TOML parsing and writing for plugin configuration.

Key features:
- Parse TOML files and binary streams using tomllib (Python 3.11+)
- Write TOML files using tomlkit (preserves key order and formatting)
- Atomic writes through a temporary sibling file
"""

import os
import tempfile
import tomllib
from pathlib import Path
from typing import IO, Any

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
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def load_toml_stream(stream: IO[bytes], source: str = "<stream>") -> dict[str, Any]:
    """
    Parse TOML from an open binary stream.

    Args:
        stream: Binary stream positioned at the start of the document
        source: Name used in error messages

    Raises:
        TOMLError: If the stream does not hold valid TOML
    """
    try:
        return tomllib.load(stream)
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML from {source}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML from {source}: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any]) -> None:
    """
    Write data to a TOML file using tomlkit.

    The document is written to a temporary file in the same directory and
    moved over the target, so readers never observe a half-written file.

    Args:
        file_path: Path to the TOML file
        data: Data to write

    Raises:
        TOMLError: If file cannot be written
    """
    tmp_name = None
    try:
        # Ensure parent directory exists
        file_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            tomlkit.dump(data, f)
        os.replace(tmp_name, file_path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
