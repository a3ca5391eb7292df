"""
Plugin Base Class.

Every plugin subclasses PluginBase. The host constructs the plugin, calls
initialize() once, calls on_load(), then toggles it with set_enabled().
While enabled the plugin reads and writes its configuration and reads its
bundled resources through the helpers below.

Example:
    class Greeter(PluginBase):
        def on_enable(self):
            self.save_default_config()
            self.logger.info(f"Hello, {self.config.get('greeting')}")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from plugbase.config import CONFIG_FILE_NAME, ConfigDocument, ConfigOverlay
from plugbase.plugin.command import CommandExecutor, PluginCommand
from plugbase.plugin.description import PluginDescription
from plugbase.plugin.host import HostContext
from plugbase.plugin.lifecycle import LifecycleController, LifecycleError, LifecycleState
from plugbase.plugin.logger import PluginLogger
from plugbase.plugin.resources import ResourceHandle, ResourceListing, ResourceStore

if TYPE_CHECKING:
    from plugbase.plugin.loader import PluginLoader


@dataclass(frozen=True)
class PluginIdentity:
    """
    Identity and paths bound at initialization.

    Attributes:
        name: Plugin name
        full_name: Name with version qualifier
        package_root: Plugin directory or archive
        data_folder: Private writable folder
        config_file: Stored configuration path inside the data folder
    """

    name: str
    full_name: str
    package_root: Path
    data_folder: Path
    config_file: Path


class PluginBase(CommandExecutor):
    """
    Base class that all plugins inherit from.

    Override on_load(), on_enable(), on_disable() and on_command() as needed;
    the defaults do nothing.
    """

    def __init__(self):
        self._lifecycle = LifecycleController(
            on_enable=self.on_enable,
            on_disable=self.on_disable,
            label=type(self).__name__,
        )
        self._identity: PluginIdentity | None = None
        self._description: PluginDescription | None = None
        self._loader: "PluginLoader | None" = None
        self._host: HostContext | None = None
        self._logger: PluginLogger | None = None
        self._resources: ResourceStore | None = None
        self._config: ConfigOverlay | None = None

    # Lifecycle hooks

    def on_load(self) -> None:
        """Called once after initialize(), before the first enable."""
        pass

    def on_enable(self) -> None:
        pass

    def on_disable(self) -> None:
        pass

    # Lifecycle

    def initialize(
        self,
        loader: "PluginLoader",
        host: HostContext,
        description: PluginDescription,
        data_folder: Path,
        package_root: Path,
    ) -> None:
        """
        Bind the plugin to its host, metadata and paths.

        Only the first call has any effect.

        Args:
            loader: Loader that created the plugin
            host: Host context the plugin runs in
            description: Parsed plugin manifest
            data_folder: Private writable folder
            package_root: Plugin directory or zip archive
        """

        def bind() -> None:
            data = Path(data_folder)
            root = Path(package_root)
            self._identity = PluginIdentity(
                name=description.name,
                full_name=description.full_name,
                package_root=root,
                data_folder=data,
                config_file=data / CONFIG_FILE_NAME,
            )
            self._description = description
            self._loader = loader
            self._host = host
            self._resources = ResourceStore.for_package(root)
            self._config = ConfigOverlay(self._identity.config_file, self._resources)
            self._lifecycle.label = description.name
            self._logger = host.create_logger(self)

        self._lifecycle.initialize(bind)

    def set_enabled(self, enabled: bool = True) -> None:
        self._lifecycle.set_enabled(enabled)

    def is_enabled(self) -> bool:
        return self._lifecycle.is_enabled()

    def is_disabled(self) -> bool:
        return self._lifecycle.is_disabled()

    def is_initialized(self) -> bool:
        return self._lifecycle.is_initialized()

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    # Identity

    def _require_identity(self) -> PluginIdentity:
        if self._identity is None:
            raise LifecycleError(f"{type(self).__name__} has not been initialized")
        return self._identity

    @property
    def identity(self) -> PluginIdentity:
        return self._require_identity()

    @property
    def name(self) -> str:
        return self._require_identity().name

    @property
    def full_name(self) -> str:
        return self._require_identity().full_name

    @property
    def data_folder(self) -> Path:
        return self._require_identity().data_folder

    @property
    def package_root(self) -> Path:
        return self._require_identity().package_root

    @property
    def description(self) -> PluginDescription:
        self._require_identity()
        return self._description

    @property
    def logger(self) -> PluginLogger:
        self._require_identity()
        return self._logger

    @property
    def loader(self) -> "PluginLoader":
        self._require_identity()
        return self._loader

    @property
    def host(self) -> HostContext:
        self._require_identity()
        return self._host

    def is_archive(self) -> bool:
        """True when the plugin is packaged as a zip archive."""
        return self._resources_store().is_archive

    # Commands

    def get_command(self, name: str) -> PluginCommand | None:
        """
        Find a command registered by this plugin.

        Tries the bare name first, then "<plugin>:<name>".

        Returns:
            The command if this plugin owns it, else None
        """
        command = self.host.get_plugin_command(name)
        if command is None or getattr(command, "owner", None) is not self:
            command = self.host.get_plugin_command(f"{self.name.lower()}:{name}")

        if command is not None and getattr(command, "owner", None) is self:
            return command
        return None

    def on_command(self, sender: Any, command: PluginCommand, label: str, args: list[str]) -> bool:
        return False

    # Resources

    def get_resource(self, name: str) -> ResourceHandle | None:
        """
        Open a bundled resource.

        Use the returned handle in a `with` block; it is None if the
        resource does not exist.
        """
        self._require_identity()
        return self._resources.open(name)

    def save_resource(self, name: str, replace: bool = False) -> bool:
        """Copy a bundled resource into the data folder."""
        return self._resources_store().save(name, self.data_folder, overwrite=replace)

    def get_resources(self) -> ResourceListing:
        return self._resources_store().list()

    def _resources_store(self) -> ResourceStore:
        self._require_identity()
        return self._resources

    # Configuration

    @property
    def config(self) -> ConfigDocument:
        self._require_identity()
        return self._config.get()

    def reload_config(self) -> ConfigDocument:
        self._require_identity()
        return self._config.reload()

    def save_config(self) -> bool:
        """
        Write the stored configuration to disk.

        Failures are reported on the plugin logger, never raised.
        """
        self._require_identity()
        if not self._config.save():
            self.logger.critical(f"Could not save config to {self._identity.config_file}")
            return False
        return True

    def save_default_config(self) -> bool:
        """Copy the bundled config.toml to the data folder if none exists."""
        self._require_identity()
        return self._config.save_default_if_absent()

    def __repr__(self) -> str:
        label = self._identity.full_name if self._identity else "uninitialized"
        return f"<{type(self).__name__} {label} {self.state.value}>"
