"""Storage decorator that checks field constraints after binding."""

from __future__ import annotations

from typing import Any, Optional

from ..core.storage import Storage, nil_equals, split_target
from ..core.validation import validate


class ValidatingStorage(Storage):
    """Wraps another storage and validates every record it binds.

    Constraints come from pydantic metadata on the dataclass fields, e.g.
    ``Annotated[int, Field(ge=1, le=65535)]``. The value is only checked
    after a successful bind; a binding error propagates unchanged.
    """

    def __init__(self, storage: Optional[Storage]):
        self._storage = storage

    @property
    def storage(self) -> Optional[Storage]:
        return self._storage

    @property
    def is_nil(self) -> bool:
        return self._storage is None or self._storage.is_nil

    def sub(self, path: str) -> "ValidatingStorage":
        if self._storage is None:
            return self
        return ValidatingStorage(self._storage.sub(path))

    def layered(self) -> "ValidatingStorage":
        layered = getattr(self._storage, "layered", None)
        return self if layered is None else ValidatingStorage(layered())

    def convert_to(self, target: Any, current: Any = None) -> Any:
        tp, current = split_target(target, current)
        if self.is_nil:
            return current
        return validate(self._storage.convert_to(tp, current))

    def equals(self, other: Optional[Storage]) -> bool:
        settled = nil_equals(self, other)
        if settled is not None:
            return settled
        if isinstance(other, ValidatingStorage):
            other = other._storage
        return self._storage.equals(other)

    def __repr__(self) -> str:
        return f"ValidatingStorage({self._storage!r})"
