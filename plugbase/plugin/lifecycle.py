"""
Plugin Lifecycle State Machine.

This module owns the initialized/enabled state of a plugin.

States:
    UNINITIALIZED --initialize--> DISABLED
    DISABLED --set_enabled(True)--> ENABLED   (fires the enable hook)
    ENABLED --set_enabled(False)--> DISABLED  (fires the disable hook)

There is no way back to UNINITIALIZED.
"""

from collections.abc import Callable
from enum import Enum

from loguru import logger


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    pass


class LifecycleError(PluginError):
    """Raised when an operation needs a state the plugin is not in."""

    pass


class LifecycleState(Enum):
    """Plugin lifecycle state enumeration."""

    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    ENABLED = "enabled"


class LifecycleController:
    """
    Guards one-time initialization and routes enable/disable transitions.

    The hooks are called after the state flips, so a hook that queries the
    controller sees the new state. Exceptions raised by a hook propagate to
    the caller and the state stays flipped.
    """

    def __init__(
        self,
        on_enable: Callable[[], None],
        on_disable: Callable[[], None],
        label: str = "plugin",
    ):
        """
        Initialize LifecycleController.

        Args:
            on_enable: Hook called on every disabled -> enabled edge
            on_disable: Hook called on every enabled -> disabled edge
            label: Name used in log messages
        """
        self._on_enable = on_enable
        self._on_disable = on_disable
        self.label = label
        self._initialized = False
        self._enabled = False

    @property
    def state(self) -> LifecycleState:
        if not self._initialized:
            return LifecycleState.UNINITIALIZED
        return LifecycleState.ENABLED if self._enabled else LifecycleState.DISABLED

    def initialize(self, binder: Callable[[], None]) -> bool:
        """
        Run the binding step once.

        Args:
            binder: Callable performing the one-time binding

        Returns:
            True if this call initialized, False if already initialized
        """
        if self._initialized:
            return False
        binder()
        self._initialized = True
        logger.debug(f"{self.label}: {LifecycleState.UNINITIALIZED.value} -> {self.state.value}")
        return True

    def set_enabled(self, target: bool = True) -> None:
        """
        Enable or disable the plugin.

        Args:
            target: Desired enabled flag

        Raises:
            LifecycleError: If called before initialize()
        """
        if not self._initialized:
            raise LifecycleError(f"Cannot change enabled state of uninitialized {self.label}")

        target = bool(target)
        if self._enabled == target:
            return

        previous = self.state
        self._enabled = target
        logger.debug(f"{self.label}: {previous.value} -> {self.state.value}")

        if target:
            self._on_enable()
        else:
            self._on_disable()

    def is_enabled(self) -> bool:
        return self._enabled

    def is_disabled(self) -> bool:
        return not self._enabled

    def is_initialized(self) -> bool:
        return self._initialized
