"""
Per-plugin logger.

Wraps the shared loguru logger with a plugin binding and a "[Prefix] "
message prefix. One instance is created per plugin at initialization.
"""

from typing import Any

from loguru import logger


class PluginLogger:
    """
    Loguru logger bound to a single plugin.

    Records carry `extra["plugin"]` so sinks can filter or format on it.
    """

    def __init__(self, name: str, prefix: str = ""):
        """
        Initialize PluginLogger.

        Args:
            name: Plugin name, bound as extra["plugin"]
            prefix: Display prefix (defaults to the name)
        """
        self.name = name
        self.prefix = prefix or name
        self._logger = logger.bind(plugin=name)

    @classmethod
    def for_plugin(cls, plugin: Any) -> "PluginLogger":
        description = plugin.description
        return cls(description.name, description.prefix)

    def _format(self, message: str) -> str:
        return f"[{self.prefix}] {message}"

    def log(self, level: str, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).log(level, self._format(message), *args, **kwargs)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).debug(self._format(message), *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).info(self._format(message), *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).warning(self._format(message), *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).error(self._format(message), *args, **kwargs)

    def critical(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1).critical(self._format(message), *args, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._logger.opt(depth=1, exception=True).error(self._format(message), *args, **kwargs)

    def __repr__(self) -> str:
        return f"PluginLogger({self.name!r})"
