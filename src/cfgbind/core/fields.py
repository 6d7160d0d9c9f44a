"""Record introspection: field names, tag priority and default annotations."""

from __future__ import annotations

import dataclasses
import sys
import types
import typing
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union, get_args, get_origin

from .value import MISSING

# Highest priority first; the literal field name is the last resort.
TAG_PRIORITY: Tuple[str, ...] = ("cfg", "json", "yaml", "toml", "ini")
DEFAULT_TAG = "def"

_NONE_TYPE = type(None)
_UNION_TYPES: Tuple[Any, ...] = (Union,)
if sys.version_info >= (3, 10):
    _UNION_TYPES = (Union, types.UnionType)


@dataclass(frozen=True)
class RecordField:
    """A bindable field of a dataclass.

    Attributes:
        attr: Python attribute name.
        key: Source key resolved through the tag priority.
        type: Resolved field type with ``Annotated`` stripped.
        default_text: Text of the ``def`` annotation, or ``None``.
        field: The underlying ``dataclasses.Field``.
    """

    attr: str
    key: str
    type: Any
    default_text: Optional[str]
    field: dataclasses.Field

    @property
    def has_default_text(self) -> bool:
        return self.default_text is not None


def tag_name(metadata: typing.Mapping[str, Any], tag: str) -> Optional[str]:
    """Name part of a ``"name,option"`` tag, or ``None`` if unusable."""
    raw = metadata.get(tag)
    if not isinstance(raw, str):
        return None
    name = raw.split(",", 1)[0].strip()
    if not name or name == "-":
        return None
    return name


def resolve_key(f: dataclasses.Field) -> str:
    for tag in TAG_PRIORITY:
        name = tag_name(f.metadata, tag)
        if name is not None:
            return name
    return f.name


def config_field(
    name: Optional[str] = None,
    *,
    default: Optional[str] = None,
    json: Optional[str] = None,
    yaml: Optional[str] = None,
    toml: Optional[str] = None,
    ini: Optional[str] = None,
    **field_kwargs: Any,
) -> Any:
    """Build a ``dataclasses.field`` carrying binding annotations.

    Args:
        name: Value of the ``cfg`` tag.
        default: Default text injected when the source has no value.
        json: Value of the ``json`` tag.
        yaml: Value of the ``yaml`` tag.
        toml: Value of the ``toml`` tag.
        ini: Value of the ``ini`` tag.
        **field_kwargs: Passed through to ``dataclasses.field`` (for
            example a native ``default`` is given as ``value=``).
    """
    metadata: Dict[str, Any] = dict(field_kwargs.pop("metadata", None) or {})
    for tag, value in (("cfg", name), ("json", json), ("yaml", yaml), ("toml", toml), ("ini", ini)):
        if value is not None:
            metadata[tag] = value
    if default is not None:
        metadata[DEFAULT_TAG] = default
    if "value" in field_kwargs:
        field_kwargs["default"] = field_kwargs.pop("value")
    return dataclasses.field(metadata=metadata, **field_kwargs)


def strip_annotated(tp: Any) -> Any:
    while get_origin(tp) is typing.Annotated:
        tp = get_args(tp)[0]
    return tp


def is_union(tp: Any) -> bool:
    return get_origin(tp) in _UNION_TYPES


def optional_inner(tp: Any) -> Optional[Any]:
    """``T`` for ``Optional[T]``, otherwise ``None``."""
    if not is_union(tp):
        return None
    args = [a for a in get_args(tp) if a is not _NONE_TYPE]
    if len(args) == len(get_args(tp)):
        return None
    if len(args) == 1:
        return args[0]
    return Union[tuple(args)]


def is_record_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


@lru_cache(maxsize=None)
def _hints(tp: type) -> Dict[str, Any]:
    return typing.get_type_hints(tp, include_extras=True)


def raw_field_type(tp: type, f: dataclasses.Field) -> Any:
    """Resolved annotation of ``f`` with any ``Annotated`` metadata kept."""
    try:
        return _hints(tp).get(f.name, f.type)
    except (NameError, TypeError):
        return f.type


@lru_cache(maxsize=None)
def record_fields(tp: type) -> Tuple[RecordField, ...]:
    """Bindable fields of dataclass ``tp`` in declaration order.

    Fields excluded from ``__init__`` are skipped.
    """
    out: List[RecordField] = []
    for f in dataclasses.fields(tp):
        if not f.init:
            continue
        default_text = f.metadata.get(DEFAULT_TAG)
        out.append(
            RecordField(
                attr=f.name,
                key=resolve_key(f),
                type=strip_annotated(raw_field_type(tp, f)),
                # an empty annotation declares no default
                default_text=default_text if isinstance(default_text, str) and default_text else None,
                field=f,
            )
        )
    return tuple(out)


def lookup_attr(obj: Any, key: str) -> Any:
    """Field of dataclass instance ``obj`` addressed by resolved key or name."""
    for rf in record_fields(type(obj)):
        if rf.key == key:
            return getattr(obj, rf.attr)
    for f in dataclasses.fields(obj):
        if f.name == key:
            return getattr(obj, f.name)
    return MISSING
