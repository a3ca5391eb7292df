"""
Host Context.

The host is the application that loads and drives plugins. Plugins only see
it through the HostContext protocol, which is handed to them at
initialization instead of being looked up from global state.

LocalHost is a small in-process host with a command table, enough to embed
plugins in a script or a test.
"""

import shlex
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from plugbase.plugin.command import PluginCommand
from plugbase.plugin.logger import PluginLogger

if TYPE_CHECKING:
    from plugbase.plugin.base import PluginBase


class HostContext(Protocol):
    """What a plugin needs from its host."""

    def get_plugin_command(self, name: str) -> PluginCommand | None:
        """Look up a command by bare or "plugin:name" qualified label."""
        ...

    def create_logger(self, plugin: "PluginBase") -> PluginLogger:
        """Build the logger a plugin keeps for its lifetime."""
        ...


class LocalHost:
    """
    In-process host with a flat command table.

    Every command is registered under "<plugin>:<name>" and, when that label
    is still free, under its bare name and aliases. The first plugin to claim
    a bare label keeps it.
    """

    def __init__(self):
        self._commands: dict[str, PluginCommand] = {}

    def register_command(self, plugin: "PluginBase", command: PluginCommand) -> bool:
        """
        Register a command for a plugin.

        Args:
            plugin: Owning plugin (used for the qualified prefix)
            command: Command to register

        Returns:
            True if the bare name was registered, False if only the
            qualified label was
        """
        prefix = plugin.name.lower()
        self._commands[f"{prefix}:{command.name}"] = command

        registered = False
        for label in [command.name, *command.aliases]:
            if label in self._commands:
                logger.debug(
                    f"Command label '{label}' already taken, "
                    f"'{prefix}:{label}' stays available"
                )
                continue
            self._commands[label] = command
            self._commands.setdefault(f"{prefix}:{label}", command)
            registered = registered or label == command.name
        return registered

    def unregister_plugin_commands(self, plugin: "PluginBase") -> None:
        for label, command in list(self._commands.items()):
            if command.owner is plugin:
                del self._commands[label]

    def get_plugin_command(self, name: str) -> PluginCommand | None:
        return self._commands.get(name)

    def create_logger(self, plugin: "PluginBase") -> PluginLogger:
        return PluginLogger.for_plugin(plugin)

    def dispatch(self, sender: Any, command_line: str) -> bool:
        """
        Run a command line such as "greet alice".

        Returns:
            The executor's result, or False for an empty line or unknown label
        """
        parts = shlex.split(command_line)
        if not parts:
            return False
        label, args = parts[0], parts[1:]
        command = self._commands.get(label)
        if command is None:
            logger.debug(f"Unknown command: {label}")
            return False
        return command.execute(sender, label, args)
