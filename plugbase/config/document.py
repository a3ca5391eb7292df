"""
Layered Configuration Document.

A ConfigDocument holds two layers:
- stored: the values persisted in the plugin's data folder
- defaults: the bundled fallback values, never written to disk

Lookups prefer the stored layer and fall back to the defaults. When both
layers hold a mapping under the same key, the default mapping fills in the
missing sub-keys one level deep.
"""

import copy
from collections.abc import Iterator, Mapping
from typing import Any

_MISSING = object()


def merge_layers(stored: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """
    Overlay stored values on top of defaults.

    Args:
        stored: Persisted values (win on conflict)
        defaults: Bundled fallback values

    Returns:
        New merged dictionary; key order follows the stored layer, then any
        default-only keys in default order
    """
    merged: dict[str, Any] = {}
    for key, value in stored.items():
        default = defaults.get(key, _MISSING)
        if isinstance(value, Mapping) and isinstance(default, Mapping):
            inner = dict(default)
            inner.update(value)
            merged[key] = inner
        else:
            merged[key] = value
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = value
    return merged


class ConfigDocument:
    """
    Ordered key/value configuration with a stored layer and a default layer.

    Writes only touch the stored layer and reads hand out copies. The default
    layer is replaced wholesale with set_defaults() and is never serialized.
    """

    def __init__(
        self,
        stored: Mapping[str, Any] | None = None,
        defaults: Mapping[str, Any] | None = None,
    ):
        self._stored: dict[str, Any] = dict(stored or {})
        self._defaults: dict[str, Any] = dict(defaults or {})

    @property
    def stored(self) -> dict[str, Any]:
        """Deep copy of the stored layer."""
        return copy.deepcopy(self._stored)

    @property
    def defaults(self) -> dict[str, Any]:
        """Deep copy of the default layer."""
        return copy.deepcopy(self._defaults)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a top-level key.

        Args:
            key: Key to look up
            default: Value returned when neither layer has the key

        Returns:
            Stored value, else the default-layer value, else `default`.
            Mappings and lists are detached copies; change them with set()
            or set_nested().
        """
        value = self._lookup(key)
        return default if value is _MISSING else value

    def __getitem__(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def _lookup(self, key: str) -> Any:
        value = self._stored.get(key, _MISSING)
        fallback = self._defaults.get(key, _MISSING)
        if value is _MISSING:
            value = fallback
        elif isinstance(value, Mapping) and isinstance(fallback, Mapping):
            inner = dict(fallback)
            inner.update(value)
            value = inner
        return value if value is _MISSING else copy.deepcopy(value)

    def exists(self, key: str) -> bool:
        """Check whether either layer defines a top-level key."""
        return key in self._stored or key in self._defaults

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.exists(key)

    def set(self, key: str, value: Any) -> None:
        """Set a top-level key in the stored layer."""
        self._stored[key] = value

    def remove(self, key: str) -> None:
        """
        Remove a key from the stored layer.

        A default for the same key becomes visible again.
        """
        self._stored.pop(key, None)

    def get_nested(self, path: str, default: Any = None) -> Any:
        """
        Look up a dot-separated path, e.g. "database.host".

        Args:
            path: Dot-separated key path
            default: Value returned when any segment is missing
        """
        first, *rest = path.split(".")
        node = self._lookup(first)
        for segment in rest:
            if not isinstance(node, Mapping) or segment not in node:
                return default
            node = node[segment]
        return default if node is _MISSING else node

    def set_nested(self, path: str, value: Any) -> None:
        """
        Set a dot-separated path in the stored layer.

        Intermediate tables are created in the stored layer as needed; a
        non-mapping value in the way is replaced by a table.
        """
        *parents, leaf = path.split(".")
        node = self._stored
        for segment in parents:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {} if not isinstance(child, Mapping) else dict(child)
                node[segment] = child
            node = child
        node[leaf] = value

    def get_all(self) -> dict[str, Any]:
        """Merged view of both layers as a new dictionary."""
        return copy.deepcopy(merge_layers(self._stored, self._defaults))

    def set_all(self, values: Mapping[str, Any]) -> None:
        """Replace the stored layer wholesale."""
        self._stored = dict(values)

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Replace the default layer wholesale."""
        self._defaults = dict(defaults)

    def keys(self) -> list[str]:
        return list(merge_layers(self._stored, self._defaults))

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def __repr__(self) -> str:
        return f"ConfigDocument(stored={self._stored!r}, defaults={self._defaults!r})"
