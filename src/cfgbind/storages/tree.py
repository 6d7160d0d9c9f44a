"""Storage over an already-decoded nested value tree."""

from __future__ import annotations

from typing import Any, Optional

from ..core.convert import Converter
from ..core.fields import is_record_type, lookup_attr
from ..core.path import PathSegment, parse_path
from ..core.storage import Storage, nil_equals, split_target
from ..core.value import MISSING, deep_equal


def _step(node: Any, seg: PathSegment) -> Any:
    """Follow one path segment, returning ``MISSING`` on a miss."""
    if seg.is_index and seg.index is None:
        return MISSING
    if isinstance(node, dict):
        value = node.get(seg.key, MISSING)
        if value is MISSING and seg.index is not None:
            value = node.get(seg.index, MISSING)
        return value
    if isinstance(node, (list, tuple)):
        index = seg.index
        if index is None and seg.key.isascii() and seg.key.isdigit():
            index = int(seg.key)
        if index is None or index >= len(node):
            return MISSING
        return node[index]
    if is_record_type(type(node)) and not seg.is_index:
        return lookup_attr(node, seg.key)
    return MISSING


class TreeStorage(Storage):
    """Storage over nested dicts and lists as produced by YAML/JSON decoders.

    Dataclass instances inside the tree are addressed by their resolved
    field names.
    """

    def __init__(self, data: Any, *, enable_defaults: bool = True, fill_existing: bool = True):
        self._data = data
        self._enable_defaults = enable_defaults
        self._fill_existing = fill_existing

    @classmethod
    def nil(cls, *, enable_defaults: bool = True) -> "TreeStorage":
        return cls(None, enable_defaults=enable_defaults)

    @property
    def data(self) -> Any:
        return self._data

    @property
    def is_nil(self) -> bool:
        return self._data is None

    @property
    def enable_defaults(self) -> bool:
        return self._enable_defaults

    def with_defaults(self, enabled: bool) -> "TreeStorage":
        return TreeStorage(self._data, enable_defaults=enabled, fill_existing=self._fill_existing)

    def layered(self) -> "TreeStorage":
        """Copy that leaves fields bound by an earlier layer alone.

        Defaults still go into records this storage allocates itself.
        """
        return TreeStorage(self._data, enable_defaults=self._enable_defaults, fill_existing=False)

    def sub(self, path: str) -> "TreeStorage":
        if self.is_nil:
            return self
        node = self._data
        for seg in parse_path(path):
            node = _step(node, seg)
            if node is MISSING or node is None:
                return TreeStorage(None, enable_defaults=self._enable_defaults, fill_existing=self._fill_existing)
        if node is self._data:
            return self
        return TreeStorage(node, enable_defaults=self._enable_defaults, fill_existing=self._fill_existing)

    def convert_to(self, target: Any, current: Any = None) -> Any:
        tp, current = split_target(target, current)
        if self.is_nil:
            return current
        converter = Converter(
            enable_defaults=self._enable_defaults,
            wrap=lambda value: TreeStorage(value, enable_defaults=self._enable_defaults),
            fill_existing=self._fill_existing,
        )
        return converter.convert(self._data, tp, current)

    def equals(self, other: Optional[Storage]) -> bool:
        settled = nil_equals(self, other)
        if settled is not None:
            return settled
        if not isinstance(other, TreeStorage):
            return False
        return deep_equal(self._data, other._data)

    def __repr__(self) -> str:
        return f"TreeStorage({self._data!r})"
