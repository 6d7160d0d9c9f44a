"""Storage protocol shared by every storage implementation."""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """Path-addressable handle over configuration data.

    Every implementation returns a *nil* storage of its own class from
    ``sub`` when the path is missing. Binding a nil storage never allocates,
    mutates or raises; it hands back the caller's current value.
    """

    @property
    def is_nil(self) -> bool:
        """Whether this storage carries no data."""
        ...

    def sub(self, path: str) -> "Storage":
        """Return the storage scoped to ``path``.

        Args:
            path: Dotted path with optional indices, e.g.
                ``database.connections[0].host``. Empty returns ``self``.

        Returns:
            A storage of the same class; nil if nothing lives at ``path``.
        """
        ...

    def convert_to(self, target: Any, current: Any = None) -> Any:
        """Bind the stored data into ``target``.

        Args:
            target: Destination type (any typing construct) or an existing
                instance, which is updated in place where it is mutable.
            current: Value already held by the destination. Fields, keys and
                elements absent from the storage keep what ``current`` holds.

        Returns:
            The bound value, or ``current`` for a nil storage.

        Raises:
            ConversionError: If a value cannot be coerced to its destination.
        """
        ...

    def equals(self, other: Optional["Storage"]) -> bool:
        """Deep equality of stored data.

        Nil equals nil (or ``None``); nil never equals a non-nil storage,
        even one holding an empty mapping.
        """
        ...


def nil_equals(self: Storage, other: Optional[Storage]) -> Optional[bool]:
    """Settle ``equals`` when either side is nil, else return ``None``."""
    other_nil = other is None or other.is_nil
    if self.is_nil or other_nil:
        return self.is_nil and other_nil
    return None


def split_target(target: Any, current: Any) -> "tuple[Any, Any]":
    """Turn a ``convert_to`` target into ``(destination type, current value)``."""
    if _is_type_like(target):
        return target, current
    return type(target), target


def _is_type_like(target: Any) -> bool:
    if isinstance(target, type):
        return True
    # typing constructs: List[int], Optional[X], Annotated[...], Any, X | None
    module = getattr(type(target), "__module__", "")
    return module in ("typing", "types", "typing_extensions")
