"""Insertion-ordered registry storage.

The schema declaration registries compose a ``MutableRegistry`` and add their
own name, conflict and lifecycle checks on top of it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

@dataclass
class MutableRegistry[K, V]:
    """Insertion-ordered mutable registry with dict storage."""

    _entries: dict[K, V] = field(default_factory=dict)

    def register(self, key: K, value: V, *, overwrite: bool = False) -> None:
        """Register a value for the provided key.

        Parameters
        ----------
        key
            Key to register.
        value
            Value stored for the key.
        overwrite
            Whether an existing entry may be replaced.

        Raises
        ------
        ValueError
            Raised when the key exists and ``overwrite`` is false.
        """
        if key in self._entries and not overwrite:
            msg = f"Key {key!r} already registered. Use overwrite=True."
            raise ValueError(msg)
        self._entries[key] = value

    def get(self, key: K) -> V | None:
        """Retrieve a value by key.

        Returns
        -------
        V | None
            Registered value, or ``None`` when missing.
        """
        return self._entries.get(key)

    def __contains__(self, key: K) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[K]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[tuple[K, V]]:
        """Iterate over registry entries in insertion order.

        Returns
        -------
        Iterator[tuple[K, V]]
            Iterator over key/value pairs.
        """
        return iter(self._entries.items())

    def values(self) -> Iterator[V]:
        """Iterate over registered values in insertion order.

        Returns
        -------
        Iterator[V]
            Iterator over values.
        """
        return iter(self._entries.values())


__all__ = ["MutableRegistry"]
