"""
Plugin Description.

This module parses the `manifest.json` shipped at the root of a plugin
package into a PluginDescription.

Key features:
- Required field validation (name, version, main)
- Optional main class, author, description and log prefix
- Works for directory and zip archive packages
"""

import json
import re
from dataclasses import dataclass, field
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

from plugbase.plugin.lifecycle import PluginError

MANIFEST_FILE = "manifest.json"


class ManifestError(PluginError):
    """Base exception for manifest-related errors."""

    pass


class ValidationError(ManifestError):
    """Raised when manifest validation fails."""

    pass


@dataclass(frozen=True)
class PluginDescription:
    """
    Descriptive metadata of a plugin.

    Attributes:
        name: Plugin name (unique identifier)
        version: Plugin version
        main: Entry point file path inside the package
        main_class: Name of the PluginBase subclass, or "" to auto-detect
        description: Plugin description
        author: Plugin author
        prefix: Log prefix, or "" to use the name
        raw_data: Raw manifest data
    """

    name: str
    version: str
    main: str
    main_class: str = ""
    description: str = ""
    author: str = ""
    prefix: str = ""
    raw_data: dict[str, Any] | None = field(default=None, compare=False, hash=False)

    @property
    def full_name(self) -> str:
        return f"{self.name} v{self.version}"


def _parse_data(data: Any, source: str) -> PluginDescription:
    if not isinstance(data, dict):
        raise ValidationError(f"Manifest {source} must be a JSON object")

    validate_manifest_structure(data)

    return PluginDescription(
        name=data["name"],
        version=data["version"],
        main=data["main"],
        main_class=data.get("class", ""),
        description=data.get("description", ""),
        author=data.get("author", ""),
        prefix=data.get("prefix", ""),
        raw_data=data,
    )


def parse_manifest(manifest_path: Path) -> PluginDescription:
    """
    Parse a manifest.json file.

    Args:
        manifest_path: Path to manifest.json

    Returns:
        PluginDescription object

    Raises:
        ManifestError: If file cannot be read or parsed
        ValidationError: If manifest is invalid
    """
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest file not found: {manifest_path}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse manifest JSON: {e}") from e
    except OSError as e:
        raise ManifestError(f"Failed to read manifest file: {e}") from e

    return _parse_data(data, str(manifest_path))


def load_description(root: Traversable) -> PluginDescription:
    """
    Read the manifest at the root of a plugin package.

    Args:
        root: Package root (directory Path or zipfile.Path)

    Raises:
        ManifestError: If the manifest is missing or unreadable
        ValidationError: If manifest is invalid
    """
    entry = root / MANIFEST_FILE
    if not entry.is_file():
        raise ManifestError(f"Manifest file not found in {root}")
    try:
        data = json.loads(entry.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse manifest JSON: {e}") from e
    except OSError as e:
        raise ManifestError(f"Failed to read manifest file: {e}") from e

    return _parse_data(data, f"{root}/{MANIFEST_FILE}")


def validate_manifest_structure(data: dict[str, Any]) -> None:
    """
    Validate manifest structure and required fields.

    Args:
        data: Parsed manifest data

    Raises:
        ValidationError: If manifest structure is invalid
    """
    # Check required fields
    for key in ("name", "version", "main"):
        if key not in data:
            raise ValidationError(f"Missing required field: {key}")

    name = data["name"]
    if not isinstance(name, str) or not re.match(r"^[A-Za-z0-9_.-]+$", name):
        raise ValidationError(
            f"Invalid plugin name: {name}. "
            f"Must contain only letters, digits, '.', '_' and '-'."
        )

    version = data["version"]
    if not isinstance(version, str) or not re.match(r"^\d+\.\d+\.\d+$", version):
        raise ValidationError(
            f"Invalid version: {version}. Must be semantic version (e.g., '1.0.0')"
        )

    main = data["main"]
    if not isinstance(main, str) or not main.endswith(".py"):
        raise ValidationError(f"Invalid main entry point: {main}. Must be a .py file")

    for key in ("class", "description", "author", "prefix"):
        if key in data and not isinstance(data[key], str):
            raise ValidationError(f"'{key}' field must be a string")

    main_class = data.get("class", "")
    if main_class and not main_class.isidentifier():
        raise ValidationError(f"Invalid main class name: {main_class}")
