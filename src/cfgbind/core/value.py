"""Helpers over the untyped value tree produced by decoders.

A dynamic value is ``None``, a ``bool``, ``int``, ``float`` or ``str``, a
``list`` of dynamic values, or a ``dict`` mapping strings to dynamic values.
"""

from __future__ import annotations

from typing import Any


class _Missing:
    """Marks an absent value, as opposed to an explicit ``None``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


MISSING: Any = _Missing()


def _kind(value: Any) -> type:
    # bool is a subclass of int; keep them apart
    if isinstance(value, bool):
        return bool
    if isinstance(value, int):
        return int
    if isinstance(value, float):
        return float
    if isinstance(value, str):
        return str
    if isinstance(value, dict):
        return dict
    if isinstance(value, (list, tuple)):
        return list
    return type(value)


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality that does not conflate ``True``, ``1`` and ``1.0``."""
    if a is b:
        return True
    if _kind(a) is not _kind(b):
        return False
    if isinstance(a, dict):
        if a.keys() != b.keys():
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    return a == b
