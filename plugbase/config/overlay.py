"""
Plugin Configuration Overlay.

This module manages a plugin's private configuration document.

Key features:
- Lazy materialization on first access
- Stored document in the data folder, bundled defaults from resources
- Explicit reload and save
- Copying the bundled default file on first run
"""

import shutil
from pathlib import Path

from loguru import logger

from plugbase.config.document import ConfigDocument
from plugbase.config.toml_handler import (
    TOMLError,
    load_toml_stream,
    read_toml,
    write_toml,
)
from plugbase.plugin.resources import ResourceStore

CONFIG_FILE_NAME = "config.toml"


class ConfigError(Exception):
    """Raised when the stored or bundled configuration cannot be loaded."""

    pass


class ConfigOverlay:
    """
    Stored configuration layered over bundled defaults.

    The document is built on the first call to get() and kept until reload().
    Only the stored layer is ever written back to disk.

    Example:
        overlay = ConfigOverlay(data_folder / "config.toml", store)
        overlay.save_default_if_absent()
        port = overlay.get().get("port")
    """

    def __init__(
        self,
        config_file: Path,
        resources: ResourceStore,
        default_resource: str = CONFIG_FILE_NAME,
    ):
        """
        Initialize ConfigOverlay.

        Args:
            config_file: Path of the stored configuration file
            resources: Store holding the bundled default document
            default_resource: Logical path of the bundled default document
        """
        self.config_file = config_file
        self.resources = resources
        self.default_resource = default_resource
        self._document: ConfigDocument | None = None

    @property
    def loaded(self) -> bool:
        return self._document is not None

    def get(self) -> ConfigDocument:
        if self._document is None:
            self._document = self._materialize()
        return self._document

    def reload(self) -> ConfigDocument:
        """Discard the cached document and read it again from disk."""
        self._document = None
        return self.get()

    def _materialize(self) -> ConfigDocument:
        try:
            stored = read_toml(self.config_file) if self.config_file.is_file() else {}
        except TOMLError as e:
            raise ConfigError(f"Failed to load config {self.config_file}: {e}") from e

        defaults = {}
        handle = self.resources.open(self.default_resource)
        if handle is not None:
            try:
                with handle as stream:
                    defaults = load_toml_stream(stream, self.default_resource)
            except TOMLError as e:
                raise ConfigError(f"Failed to load bundled defaults: {e}") from e

        logger.debug(
            f"Loaded config {self.config_file} "
            f"({len(stored)} stored keys, {len(defaults)} default keys)"
        )
        return ConfigDocument(stored, defaults)

    def save(self) -> bool:
        """
        Write the stored layer to the config file.

        An unreadable stored file is left untouched and reported as a
        failed save.

        Returns:
            True on success, False if the document could not be loaded or
            the file could not be written
        """
        try:
            document = self.get()
        except ConfigError as e:
            logger.debug(f"Config save failed: {e}")
            return False
        try:
            write_toml(self.config_file, document.stored)
        except TOMLError as e:
            logger.debug(f"Config save failed: {e}")
            return False
        return True

    def save_default_if_absent(self) -> bool:
        """
        Copy the bundled default document to the config file path.

        Does nothing when a stored config already exists.

        Returns:
            True if the default file was copied
        """
        if self.config_file.exists():
            return False
        handle = self.resources.open(self.default_resource)
        if handle is None:
            return False

        target = self.config_file
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with handle as src, open(target, "xb") as dst:
                shutil.copyfileobj(src, dst)
        except FileExistsError:
            return False
        except OSError as e:
            logger.error(f"Failed to copy default config to {target}: {e}")
            return False
        return True
