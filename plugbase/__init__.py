"""
Plugbase - plugin lifecycle, layered configuration and bundled resources.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from plugbase.config import ConfigDocument, ConfigError, ConfigOverlay
from plugbase.plugin.base import PluginBase, PluginIdentity
from plugbase.plugin.command import CommandExecutor, PluginCommand
from plugbase.plugin.description import PluginDescription
from plugbase.plugin.host import HostContext, LocalHost
from plugbase.plugin.lifecycle import (
    LifecycleController,
    LifecycleError,
    LifecycleState,
    PluginError,
)
from plugbase.plugin.loader import LoaderError, PluginLoader
from plugbase.plugin.logger import PluginLogger
from plugbase.plugin.resources import ResourceHandle, ResourceStore

__all__ = [
    "__version__",
    "CommandExecutor",
    "ConfigDocument",
    "ConfigError",
    "ConfigOverlay",
    "HostContext",
    "LifecycleController",
    "LifecycleError",
    "LifecycleState",
    "LoaderError",
    "LocalHost",
    "PluginBase",
    "PluginCommand",
    "PluginDescription",
    "PluginError",
    "PluginIdentity",
    "PluginLoader",
    "PluginLogger",
    "ResourceHandle",
    "ResourceStore",
]
