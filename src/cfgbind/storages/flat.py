"""Storage over a single-level mapping of compound keys.

Environment variables, ``.properties`` files and command-line overrides all
arrive as flat key/value pairs (``database.host=db``, ``POOLS_0_MAX_CONNS=20``).
``FlatStorage`` addresses them with the same path language as the tree
storage and rebuilds nested structure only when binding, guided by the
destination type.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple, get_args, get_origin

from ..core.convert import Converter, is_storage_type
from ..core.defaults import MAPPING_ORIGINS, SEQUENCE_ORIGINS
from ..core.fields import is_record_type, is_union, optional_inner, record_fields, strip_annotated
from ..core.path import (
    DEFAULT_INDEX_FORMAT,
    DEFAULT_SEPARATOR,
    check_index_format,
    format_path,
    index_pattern,
    parse_path,
)
from ..core.storage import Storage, nil_equals, split_target
from ..core.value import MISSING, deep_equal


def _is_structured(tp: Any) -> bool:
    tp = strip_annotated(tp)
    tp = optional_inner(tp) or tp
    if is_record_type(tp):
        return True
    origin = get_origin(tp) or tp
    return origin in MAPPING_ORIGINS or origin in SEQUENCE_ORIGINS


class FlatStorage(Storage):
    """Storage over ``{compound key: value}`` pairs.

    Args:
        data: The flat mapping; ``None`` makes a nil storage.
        separator: Token between member names (``.``, ``_``, ``__``).
        index_format: Template for list indices with exactly one ``%d``
            (``[%d]``, ``_%d``).
        enable_defaults: Inject ``def`` annotations while binding.
        ignore_case: Match paths against keys case-insensitively, so the
            path ``database.host`` finds ``DATABASE_HOST``.
        fill_existing: Inject defaults into zero fields of records bound
            before this storage; see ``layered``.

    Raises:
        ValueError: If ``separator`` is empty or ``index_format`` is not a
            valid template.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]],
        *,
        separator: str = DEFAULT_SEPARATOR,
        index_format: str = DEFAULT_INDEX_FORMAT,
        enable_defaults: bool = True,
        ignore_case: bool = True,
        fill_existing: bool = True,
    ):
        if not separator:
            raise ValueError("separator must not be empty")
        check_index_format(index_format)
        self._data: Optional[Dict[str, Any]] = None if data is None else {str(k): v for k, v in data.items()}
        self._separator = separator
        self._index_format = index_format
        self._enable_defaults = enable_defaults
        self._ignore_case = ignore_case
        self._fill_existing = fill_existing
        self._index_re = index_pattern(index_format, separator)

    def _derive(self, data: Optional[Mapping[str, Any]], **overrides: Any) -> "FlatStorage":
        options = dict(
            separator=self._separator,
            index_format=self._index_format,
            enable_defaults=self._enable_defaults,
            ignore_case=self._ignore_case,
            fill_existing=self._fill_existing,
        )
        options.update(overrides)
        return FlatStorage(data, **options)

    @classmethod
    def nil(cls, **options: Any) -> "FlatStorage":
        return cls(None, **options)

    @classmethod
    def from_nested(
        cls,
        value: Any,
        *,
        separator: str = DEFAULT_SEPARATOR,
        index_format: str = DEFAULT_INDEX_FORMAT,
        **options: Any,
    ) -> "FlatStorage":
        """Flatten a nested value tree.

        Mapping keys are joined with ``separator`` and list elements use
        ``index_format``. Empty containers are kept as leaves and a top-level
        scalar is stored under ``""``, so ``to_nested`` gives the tree back.

        Raises:
            ValueError: If a mapping key is empty, since its entry could not
                be told apart from the enclosing value.
        """
        if value is None:
            return cls(None, separator=separator, index_format=index_format, **options)
        out: Dict[str, Any] = {}
        _flatten(value, "", separator, index_format, out)
        return cls(out, separator=separator, index_format=index_format, **options)

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        return self._data

    @property
    def separator(self) -> str:
        return self._separator

    @property
    def index_format(self) -> str:
        return self._index_format

    @property
    def is_nil(self) -> bool:
        return self._data is None

    def with_defaults(self, enabled: bool) -> "FlatStorage":
        return self._derive(self._data, enable_defaults=enabled)

    def layered(self) -> "FlatStorage":
        return self._derive(self._data, fill_existing=False)

    def _norm(self, text: str) -> str:
        return text.lower() if self._ignore_case else text

    def _select(self, data: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
        """Entries under ``prefix`` with the prefix removed.

        A key equal to the prefix lands under ``""``. A key continuing with
        an index token keeps the token; one continuing with the separator
        loses it.
        """
        p = self._norm(prefix)
        sep = self._norm(self._separator)
        out: Dict[str, Any] = {}
        for key, value in data.items():
            k = self._norm(key)
            if k == p:
                out[""] = value
            elif not k.startswith(p):
                continue
            elif self._index_re.match(k, len(p)):
                out[key[len(p):]] = value
            elif k.startswith(sep, len(p)):
                out[key[len(p) + len(sep):]] = value
        return out

    def _strip_boundary(self, rest: str) -> str:
        if not rest or self._index_re.match(rest):
            return rest
        if rest.startswith(self._separator):
            return rest[len(self._separator):]
        return rest

    def _split_head(self, key: str) -> Tuple[str, str]:
        """Split ``key`` at its first member or index boundary."""
        for i in range(1, len(key)):
            if self._index_re.match(key, i):
                return key[:i], key[i:]
            if key.startswith(self._separator, i):
                return key[:i], key[i + len(self._separator):]
        return key, ""

    def _group_indices(self, data: Mapping[str, Any]) -> Optional[Dict[int, Dict[str, Any]]]:
        """Group keys by their leading index token, or ``None`` if any key has none."""
        if not data:
            return None
        groups: Dict[int, Dict[str, Any]] = {}
        for key, value in data.items():
            m = self._index_re.match(key)
            if m is None:
                return None
            groups.setdefault(int(m.group(1)), {})[self._strip_boundary(key[m.end():])] = value
        return groups

    def _nest(self, data: Mapping[str, Any]) -> Any:
        """Rebuild a nested value with no type guidance."""
        if not data:
            return {}
        if set(data) == {""}:
            return data[""]
        groups = self._group_indices(data)
        if groups is not None:
            return [self._nest(groups[i]) if i in groups else None for i in range(max(groups) + 1)]
        members: Dict[str, Dict[str, Any]] = {}
        for key, value in data.items():
            if key == "":
                continue
            head, rest = self._split_head(key)
            members.setdefault(head, {})[rest] = value
        return {head: self._nest(group) for head, group in members.items()}

    def _shape(self, data: Mapping[str, Any], tp: Any) -> Any:
        """Rebuild the dynamic value for destination ``tp``."""
        tp = strip_annotated(tp)
        tp = optional_inner(tp) or tp
        origin = get_origin(tp) or tp

        if is_record_type(tp):
            if set(data) == {""}:
                return data[""]
            indexed = self._indexed_only(data)
            if indexed is not None:
                return indexed
            out: Dict[str, Any] = {}
            for rf in record_fields(tp):
                selected = self._select(data, rf.key)
                if selected:
                    shaped = self._shape(selected, rf.type)
                    if shaped is not MISSING:
                        out[rf.key] = shaped
            return out

        if origin in MAPPING_ORIGINS:
            if set(data) == {""}:
                return data[""]
            args = get_args(tp)
            val_tp = args[1] if len(args) == 2 else Any
            if not _is_structured(val_tp) and val_tp not in (Any, object):
                return {key: value for key, value in data.items() if key != ""}
            members: Dict[str, Dict[str, Any]] = {}
            for key, value in data.items():
                if key == "":
                    continue
                head, rest = self._split_head(key)
                members.setdefault(head, {})[rest] = value
            return {head: self._shape(group, val_tp) for head, group in members.items()}

        if origin in SEQUENCE_ORIGINS:
            groups = self._group_indices({k: v for k, v in data.items() if k != ""})
            if groups is None:
                return data.get("", self._nest(data))
            args = get_args(tp)
            size = max(groups) + 1
            if origin is tuple and args and args[-1] is not Ellipsis:
                elem_types: List[Any] = list(args) + [Any] * max(0, size - len(args))
            else:
                elem_types = [args[0] if args else Any] * size
            return [
                self._shape(groups[i], elem_types[i]) if i in groups else None
                for i in range(size)
            ]

        if tp is Any or tp is object or is_storage_type(tp) or is_union(tp):
            return self._nest(data)
        if "" in data:
            return data[""]
        indexed = self._indexed_only(data)
        if indexed is not None:
            return indexed
        # deeper keys belong to sibling fields sharing this name as a prefix
        return MISSING

    def _indexed_only(self, data: Mapping[str, Any]) -> Any:
        """Generic rebuild of ``data`` if every key starts with an index token.

        Such keys describe a list, so a record or scalar destination gets
        the list and the converter reports the mismatch.
        """
        rest = {k: v for k, v in data.items() if k != ""}
        if self._group_indices(rest) is None:
            return None
        return self._nest(rest)

    def to_nested(self) -> Any:
        """The stored pairs rebuilt as a nested tree, or ``None`` when nil."""
        if self.is_nil:
            return None
        return self._nest(self._data)

    def sub(self, path: str) -> "FlatStorage":
        if self.is_nil:
            return self
        segments = parse_path(path)
        if not segments:
            return self
        prefix = format_path(segments, self._separator, self._index_format)
        if prefix is None:
            return self._derive(None)
        selected = self._select(self._data, prefix)
        return self._derive(selected if selected else None)

    def convert_to(self, target: Any, current: Any = None) -> Any:
        tp, current = split_target(target, current)
        if self.is_nil:
            return current
        converter = Converter(
            enable_defaults=self._enable_defaults,
            wrap=lambda value: FlatStorage.from_nested(
                value,
                separator=self._separator,
                index_format=self._index_format,
                enable_defaults=self._enable_defaults,
                ignore_case=self._ignore_case,
            ),
            fill_existing=self._fill_existing,
        )
        if is_storage_type(strip_annotated(tp)):
            return self
        return converter.convert(self._shape(self._data, tp), tp, current)

    def equals(self, other: Optional[Storage]) -> bool:
        settled = nil_equals(self, other)
        if settled is not None:
            return settled
        if not isinstance(other, FlatStorage):
            return False
        return deep_equal(self._data, other._data)

    def __repr__(self) -> str:
        return f"FlatStorage({self._data!r}, separator={self._separator!r})"


def _flatten(value: Any, prefix: str, separator: str, index_format: str, out: Dict[str, Any]) -> None:
    if isinstance(value, dict) and value:
        for key, item in value.items():
            if str(key) == "":
                raise ValueError(f"empty key under {prefix!r} cannot be flattened")
            _flatten(item, f"{prefix}{separator}{key}" if prefix else str(key), separator, index_format, out)
    elif isinstance(value, (list, tuple)) and value:
        for i, item in enumerate(value):
            _flatten(item, prefix + index_format % i, separator, index_format, out)
    elif prefix or not isinstance(value, dict):
        out[prefix] = value
