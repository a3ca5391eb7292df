"""
Plugbase Configuration System - layered TOML configuration for plugins.

This module provides:
- ConfigDocument: stored values over bundled defaults
- ConfigOverlay: lazy loading, reload and save of a plugin's config file
- TOML helpers built on tomllib and tomlkit

Example usage:
    from plugbase.config import ConfigOverlay

    overlay = ConfigOverlay(data_folder / "config.toml", resource_store)
    overlay.save_default_if_absent()

    cfg = overlay.get()
    print(cfg.get("threshold"))   # stored value, else bundled default
    cfg.set("threshold", 0.7)
    overlay.save()
"""

from plugbase.config.document import ConfigDocument, merge_layers
from plugbase.config.overlay import CONFIG_FILE_NAME, ConfigError, ConfigOverlay
from plugbase.config.toml_handler import TOMLError

__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigDocument",
    "ConfigError",
    "ConfigOverlay",
    "TOMLError",
    "merge_layers",
]
