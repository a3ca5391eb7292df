"""
Plugin Loader.

This module loads plugin packages and drives them through their lifecycle
on behalf of a host.

Key features:
- Directory and zip archive packages with manifest.json at the root
- Entry module import from the package (no sys.path changes)
- Main class selection by manifest "class" or auto-detection
- Module caching and unloading
"""

import importlib.abc
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType

from loguru import logger

from plugbase.plugin.base import PluginBase
from plugbase.plugin.description import (
    MANIFEST_FILE,
    ManifestError,
    PluginDescription,
    load_description,
)
from plugbase.plugin.host import HostContext
from plugbase.plugin.lifecycle import PluginError
from plugbase.plugin.resources import (
    is_archive,
    join_segments,
    open_package,
    split_resource_path,
)


class LoaderError(PluginError):
    """Raised when a plugin package cannot be loaded."""

    pass


def _module_name(plugin_name: str) -> str:
    return "plugbase_plugin_" + plugin_name.replace("-", "_").replace(".", "_")


class ArchiveSourceLoader(importlib.abc.SourceLoader):
    """Import loader for an entry module stored inside a zip archive."""

    def __init__(self, archive: Path, segments: tuple[str, ...]):
        self.archive = archive
        self.segments = segments

    def get_filename(self, fullname: str) -> str:
        return str(self.archive.joinpath(*self.segments))

    def get_data(self, path: str) -> bytes:
        with open_package(self.archive) as root:
            return join_segments(root, self.segments).read_bytes()


class PluginLoader:
    """
    Loads plugins from directories or zip archives.

    Each plugin gets `<data_root>/<plugin name>` as its data folder. The
    folder is not created here; saving a resource or config creates it.
    """

    def __init__(self, host: HostContext, data_root: Path):
        """
        Initialize PluginLoader.

        Args:
            host: Host context handed to every plugin
            data_root: Parent directory of the plugins' data folders
        """
        self.host = host
        self.data_root = Path(data_root)
        # plugin name -> (resolved package path, entry module)
        self._module_cache: dict[str, tuple[Path, ModuleType]] = {}

    def can_load(self, path: Path) -> bool:
        """Check whether a path looks like a plugin package."""
        path = Path(path)
        if not path.exists():
            return False
        with open_package(path) as root:
            return (root / MANIFEST_FILE).is_file()

    def get_description(self, path: Path) -> PluginDescription | None:
        """
        Read a package's description without loading it.

        Returns:
            PluginDescription, or None if the manifest is missing or invalid
        """
        try:
            with open_package(Path(path)) as root:
                return load_description(root)
        except ManifestError as e:
            logger.warning(f"Could not read plugin description from {path}: {e}")
            return None

    def load_plugin(self, path: Path) -> PluginBase:
        """
        Load a plugin package and call its on_load() hook.

        Args:
            path: Plugin directory or zip archive

        Returns:
            Initialized, disabled plugin instance

        Raises:
            LoaderError: If the package, entry module or main class is invalid
        """
        path = Path(path)
        if not path.exists():
            raise LoaderError(f"Plugin package not found: {path}")

        try:
            with open_package(path) as root:
                description = load_description(root)
        except ManifestError as e:
            raise LoaderError(f"Invalid plugin package {path}: {e}") from e

        logger.info(f"Loading {description.full_name}")

        module = self._load_module(path, description)
        plugin_class = self._find_main_class(module, description)

        try:
            plugin = plugin_class()
        except Exception as e:
            raise LoaderError(f"Failed to construct {plugin_class.__name__}: {e}") from e

        data_folder = self.data_root / description.name
        if data_folder.exists() and not data_folder.is_dir():
            logger.warning(f"Data folder {data_folder} for {description.name} exists and is not a directory")

        plugin.initialize(self, self.host, description, data_folder, path)
        plugin.on_load()
        return plugin

    def enable_plugin(self, plugin: PluginBase) -> None:
        if plugin.is_disabled():
            logger.info(f"Enabling {plugin.full_name}")
            plugin.set_enabled(True)

    def disable_plugin(self, plugin: PluginBase) -> None:
        if plugin.is_enabled():
            logger.info(f"Disabling {plugin.full_name}")
            plugin.set_enabled(False)

    def _load_module(self, path: Path, description: PluginDescription) -> ModuleType:
        resolved = path.resolve()
        cached = self._module_cache.get(description.name)
        if cached is not None:
            cached_path, module = cached
            if cached_path != resolved:
                raise LoaderError(
                    f"Plugin {description.name} is already loaded from {cached_path}, "
                    f"refusing to load it again from {path}"
                )
            return module

        segments = split_resource_path(description.main)
        if segments is not None:
            with open_package(path) as root:
                if not join_segments(root, segments).is_file():
                    segments = None
        if segments is None:
            raise LoaderError(f"Entry point not found: {description.main} in {path}")

        module_name = _module_name(description.name)
        entry_point = path.joinpath(*segments)
        try:
            if is_archive(path):
                spec = importlib.util.spec_from_file_location(
                    module_name, entry_point, loader=ArchiveSourceLoader(path, segments)
                )
            else:
                spec = importlib.util.spec_from_file_location(module_name, entry_point)

            if spec is None or spec.loader is None:
                raise LoaderError(f"Failed to create module spec for {entry_point}")

            module = importlib.util.module_from_spec(spec)

            # Add to sys.modules before execution
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoaderError(f"Failed to load plugin module {entry_point}: {e}") from e

        self._module_cache[description.name] = (resolved, module)
        return module

    def _find_main_class(self, module: ModuleType, description: PluginDescription) -> type[PluginBase]:
        if description.main_class:
            candidate = getattr(module, description.main_class, None)
            if not (inspect.isclass(candidate) and issubclass(candidate, PluginBase)):
                raise LoaderError(
                    f"Main class {description.main_class} of {description.name} "
                    f"is missing or does not extend PluginBase"
                )
            return candidate

        candidates = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj)
            and issubclass(obj, PluginBase)
            and obj is not PluginBase
            and obj.__module__ == module.__name__
        ]
        if len(candidates) != 1:
            raise LoaderError(
                f"Expected exactly one PluginBase subclass in {description.main}, "
                f"found {len(candidates)}; set 'class' in {MANIFEST_FILE}"
            )
        return candidates[0]

    def unload_module(self, plugin_name: str) -> None:
        """Drop a plugin's entry module from the cache and sys.modules."""
        self._module_cache.pop(plugin_name, None)
        sys.modules.pop(_module_name(plugin_name), None)

    def is_module_cached(self, plugin_name: str) -> bool:
        return plugin_name in self._module_cache
