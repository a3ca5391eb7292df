"""
Plugin Commands.

Commands are routed by the host; this module only defines the pieces a
plugin sees: the executor interface and a command owned by a plugin.
"""

from dataclasses import dataclass, field
from typing import Any


class CommandExecutor:
    """Receives commands dispatched by the host."""

    def on_command(self, sender: Any, command: "PluginCommand", label: str, args: list[str]) -> bool:
        """
        Handle a command.

        Returns:
            True if the command was handled, False to report it as unhandled
        """
        return False


@dataclass
class PluginCommand:
    """
    A command registered by a plugin.

    Attributes:
        name: Command name without the plugin prefix
        owner: Plugin that registered the command
        executor: Handler for the command (defaults to the owner)
        description: Short help text
        usage: Usage string
        aliases: Alternative labels
    """

    name: str
    owner: Any
    executor: CommandExecutor | None = None
    description: str = ""
    usage: str = ""
    aliases: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.executor is None and isinstance(self.owner, CommandExecutor):
            self.executor = self.owner

    def execute(self, sender: Any, label: str, args: list[str]) -> bool:
        """Delegate to the executor; False when there is none."""
        if self.executor is None:
            return False
        return bool(self.executor.on_command(sender, self, label, args))
