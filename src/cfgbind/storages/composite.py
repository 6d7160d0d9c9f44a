"""Layered storage: later members override earlier ones."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from ..core.errors import CompositionError, ConversionError
from ..core.locks import RWLock
from ..core.storage import Storage, nil_equals, split_target

logger = logging.getLogger(__name__)


def _is_nil(storage: Optional[Storage]) -> bool:
    return storage is None or storage.is_nil


def _layered(storage: Storage) -> Storage:
    layered = getattr(storage, "layered", None)
    return storage if layered is None else layered()


class CompositeStorage(Storage):
    """Ordered stack of storages bound one after another into one destination.

    Members are replayed in index order, so a higher index wins for every
    field it sets while fields it leaves unset keep what lower members (or
    the caller) put there. Defaults are injected by the first non-nil member
    only; later members never default a field an earlier one bound. Members
    may be swapped at runtime with ``update_storage``, which reports whether
    the content actually changed.

    Args:
        sources: Member storages, lowest priority first. ``None`` entries
            are treated as nil.
    """

    def __init__(self, sources: Sequence[Optional[Storage]] = ()):
        self._sources: List[Optional[Storage]] = list(sources)
        self._lock = RWLock()

    @property
    def sources(self) -> List[Optional[Storage]]:
        with self._lock.read():
            return list(self._sources)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sources)

    @property
    def is_nil(self) -> bool:
        return all(_is_nil(s) for s in self.sources)

    def sub(self, path: str) -> "CompositeStorage":
        return CompositeStorage([None if s is None else s.sub(path) for s in self.sources])

    def layered(self) -> "CompositeStorage":
        return CompositeStorage([None if s is None else _layered(s) for s in self.sources])

    def convert_to(self, target: Any, current: Any = None) -> Any:
        """Bind every non-nil member into ``target`` in priority order.

        Raises:
            CompositionError: If ``target`` is ``None``.
            ConversionError: With ``source_index`` naming the failing member.
        """
        if target is None:
            raise CompositionError("cannot bind a composite storage into None")
        tp, current = split_target(target, current)
        first = True
        for index, storage in enumerate(self.sources):
            if _is_nil(storage):
                continue
            if not first:
                storage = _layered(storage)
            first = False
            try:
                current = storage.convert_to(tp, current)
            except ConversionError as exc:
                raise exc.with_source_index(index) from exc
        return current

    def update_storage(self, index: int, storage: Optional[Storage]) -> bool:
        """Replace member ``index``.

        Returns:
            ``True`` if the member was swapped because its content changed,
            ``False`` for an out-of-range index or equal content.
        """
        with self._lock.write():
            if not 0 <= index < len(self._sources):
                logger.debug("update_storage: index %d out of range", index)
                return False
            old = self._sources[index]
            if _is_nil(old) and _is_nil(storage):
                changed = False
            elif _is_nil(old):
                changed = True
            else:
                changed = not old.equals(storage)
            if changed:
                self._sources[index] = storage
            logger.debug("update_storage: index %d changed=%s", index, changed)
            return changed

    def equals(self, other: Optional[Storage]) -> bool:
        settled = nil_equals(self, other)
        if settled is not None:
            return settled
        if not isinstance(other, CompositeStorage):
            return False
        mine, theirs = self.sources, other.sources
        if len(mine) != len(theirs):
            return False
        for a, b in zip(mine, theirs):
            if _is_nil(a):
                if not _is_nil(b):
                    return False
            elif not a.equals(b):
                return False
        return True

    def __repr__(self) -> str:
        return f"CompositeStorage({self.sources!r})"
