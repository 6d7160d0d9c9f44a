"""Binding of dynamic values into typed Python destinations."""

from __future__ import annotations

import dataclasses
import enum
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, get_args, get_origin

from .defaults import MAPPING_ORIGINS, SEQUENCE_ORIGINS, parse_default
from .errors import ConversionError, type_name
from .fields import (
    RecordField,
    is_record_type,
    is_union,
    optional_inner,
    record_fields,
    strip_annotated,
)
from .storage import Storage
from .temporal import to_duration, to_time
from .value import MISSING

logger = logging.getLogger(__name__)

ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)

_TRUE_STRINGS = frozenset(("true", "1", "t", "yes", "y", "on"))
_FALSE_STRINGS = frozenset(("false", "0", "f", "no", "n", "off"))
_SCALAR_DESTS = (bool, int, float, str, bytes)
_ZEROABLE = (bool, int, float, str, bytes, list, tuple, set, frozenset, dict, timedelta)


def is_storage_type(tp: Any) -> bool:
    if tp is Storage:
        return True
    return isinstance(tp, type) and Storage in getattr(tp, "__mro__", ())


def record_as_mapping(obj: Any) -> Dict[str, Any]:
    return {rf.key: getattr(obj, rf.attr) for rf in record_fields(type(obj))}


def _mismatch(src: Any, tp: Any, detail: str = "") -> ConversionError:
    message = f"cannot convert {type_name(type(src))} to {type_name(tp)}"
    if detail:
        message = f"{message}: {detail}"
    return ConversionError(message, source_type=type_name(type(src)), target_type=type_name(tp))


class Converter:
    """Walks a destination type and fills it from a dynamic value.

    Args:
        enable_defaults: Inject ``def`` annotations into fields the source
            leaves unset.
        wrap: Builds a storage over a raw sub-tree, for destinations typed
            as ``Storage``.
        fill_existing: Also inject defaults into zero-valued fields of
            records that existed before this bind. Off when replaying a
            later layer over values an earlier layer already bound.
    """

    def __init__(
        self,
        enable_defaults: bool = True,
        wrap: Optional[Callable[[Any], Storage]] = None,
        fill_existing: bool = True,
    ):
        self.enable_defaults = enable_defaults
        self.fill_existing = fill_existing
        self._wrap = wrap

    def convert(self, src: Any, tp: Any, current: Any = MISSING) -> Any:
        """Bind ``src`` into a value of type ``tp``.

        An absent or ``None`` source returns ``current`` untouched.
        """
        tp = strip_annotated(tp)
        if src is MISSING or src is None:
            return current
        if tp is Any or tp is object:
            return src

        inner = optional_inner(tp)
        if inner is not None:
            return self.convert(src, inner, MISSING if current is None else current)
        if is_union(tp):
            return self._to_union(src, tp, current)
        if is_storage_type(tp):
            if self._wrap is None:
                raise _mismatch(src, tp, "no storage wrapper configured")
            return self._coerce(self._wrap, src, tp)

        if tp is timedelta:
            return self._coerce(to_duration, src, tp)
        if tp is datetime:
            return self._coerce(to_time, src, tp)
        if tp is date:
            return self._coerce(_to_date, src, tp)

        if is_record_type(tp):
            if type(src) is tp:
                return src
            if is_record_type(type(src)):
                src = record_as_mapping(src)
            if not isinstance(src, Mapping):
                raise _mismatch(src, tp)
            return self.bind_record(src, tp, current)

        origin = get_origin(tp) or tp
        if origin in MAPPING_ORIGINS:
            return self._to_mapping(src, tp, current)
        if origin in SEQUENCE_ORIGINS:
            return self._to_sequence(src, tp, origin)
        return self._to_scalar(src, tp)

    def bind_record(self, src: Any, tp: type, current: Any = MISSING) -> Any:
        """Fill dataclass ``tp`` from mapping ``src`` (or ``MISSING``).

        ``current`` is updated in place when it is a mutable instance of
        ``tp``; otherwise a fresh instance is built first.
        """
        fresh = not isinstance(current, tp)
        target = self.new_record(tp) if fresh else current
        updates: Dict[str, Any] = {}
        for rf in record_fields(tp):
            existing = getattr(target, rf.attr)
            value = src.get(rf.key, MISSING) if src is not MISSING else MISSING
            try:
                new = self._bind_field(rf, value, existing, fresh)
            except ConversionError as exc:
                raise exc.with_field(rf.key) from exc.__cause__
            if new is not existing:
                updates[rf.attr] = new

        if not updates:
            return target
        if tp.__dataclass_params__.frozen:
            return dataclasses.replace(target, **updates)
        for attr, new in updates.items():
            setattr(target, attr, new)
        return target

    def new_record(self, tp: type) -> Any:
        """Instance of ``tp`` with native defaults, zero values elsewhere."""
        kwargs: Dict[str, Any] = {}
        for rf in record_fields(tp):
            f = rf.field
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[rf.attr] = self.zero_value(rf.type)
        try:
            return tp(**kwargs)
        except (TypeError, ValueError) as exc:
            raise ConversionError(
                f"cannot construct {tp.__name__}: {exc}", target_type=tp.__name__
            ) from exc

    def zero_value(self, tp: Any) -> Any:
        tp = strip_annotated(tp)
        if tp is Any or tp is object or optional_inner(tp) is not None or is_union(tp):
            return None
        if is_record_type(tp):
            return self.new_record(tp)
        if tp is timedelta:
            return timedelta(0)
        if tp is datetime:
            return ZERO_TIME
        origin = get_origin(tp) or tp
        if origin in MAPPING_ORIGINS:
            return {}
        if origin in (tuple, frozenset, set):
            return origin()
        if origin in SEQUENCE_ORIGINS:
            return []
        if tp in _SCALAR_DESTS:
            return tp()
        return None

    def _bind_field(self, rf: RecordField, value: Any, existing: Any, fresh: bool) -> Any:
        if value is not MISSING and value is not None:
            return self.convert(value, rf.type, existing)
        if not self.enable_defaults:
            return existing
        if rf.has_default_text and (fresh or (self.fill_existing and self._is_zero(existing))):
            return parse_default(rf.default_text, rf.type, self)

        # nested records pick up their own defaults
        inner = strip_annotated(optional_inner(rf.type) or rf.type)
        if is_record_type(inner) and isinstance(existing, inner):
            return self.bind_record(MISSING, inner, existing)
        return existing

    @staticmethod
    def _is_zero(value: Any) -> bool:
        if value is None or value is MISSING:
            return True
        if isinstance(value, datetime):
            return value == ZERO_TIME or value == datetime.min
        if isinstance(value, enum.Enum):
            return False
        return isinstance(value, _ZEROABLE) and not value

    def _to_union(self, src: Any, tp: Any, current: Any) -> Any:
        errors = []
        for arm in get_args(tp):
            arm_current = current if _holds(current, arm) else MISSING
            try:
                return self.convert(src, arm, arm_current)
            except ConversionError as exc:
                errors.append(exc.message)
        raise _mismatch(src, tp, "; ".join(errors))

    def _to_mapping(self, src: Any, tp: Any, current: Any) -> Any:
        if is_record_type(type(src)):
            src = record_as_mapping(src)
        if not isinstance(src, Mapping):
            raise _mismatch(src, tp)
        args = get_args(tp)
        key_tp, val_tp = args if len(args) == 2 else (Any, Any)
        target = current if isinstance(current, dict) else {}
        for key, value in src.items():
            try:
                ck = key if key_tp is Any else self._to_scalar(key, strip_annotated(key_tp))
                if value is None:
                    cv = self.zero_value(val_tp)
                else:
                    cv = self.convert(value, val_tp)
            except ConversionError as exc:
                raise exc.with_field(f"[{key}]") from exc.__cause__
            target[ck] = cv
        return target

    def _to_sequence(self, src: Any, tp: Any, origin: Any) -> Any:
        if not isinstance(src, (list, tuple)):
            raise _mismatch(src, tp)
        args = get_args(tp)
        if origin is tuple and args and args[-1] is not Ellipsis:
            if len(args) != len(src):
                raise _mismatch(src, tp, f"expected {len(args)} elements, got {len(src)}")
            elem_types = list(args)
        else:
            elem_types = [args[0] if args else Any] * len(src)

        items = []
        for i, (value, elem_tp) in enumerate(zip(src, elem_types)):
            try:
                items.append(self.zero_value(elem_tp) if value is None else self.convert(value, elem_tp))
            except ConversionError as exc:
                raise exc.with_field(f"[{i}]") from exc.__cause__
        if origin in (tuple, set, frozenset):
            return origin(items)
        return items

    def _to_scalar(self, src: Any, tp: Any) -> Any:
        if isinstance(src, (dict, list, tuple)) and tp in _SCALAR_DESTS:
            raise _mismatch(src, tp)
        if tp is bool:
            return _to_bool(src, tp)
        if tp is int:
            return _to_int(src, tp)
        if tp is float:
            if isinstance(src, (int, float)) and not isinstance(src, bool):
                return float(src)
            if isinstance(src, str):
                return self._coerce(float, src.strip(), tp)
            raise _mismatch(src, tp)
        if tp is str:
            if isinstance(src, str):
                return src
            if isinstance(src, (int, float)) and not isinstance(src, bool):
                return str(src)
            raise _mismatch(src, tp)
        if tp is bytes:
            if isinstance(src, str):
                return src.encode()
            raise _mismatch(src, tp)
        if isinstance(tp, type) and issubclass(tp, enum.Enum):
            return _to_enum(src, tp)
        if isinstance(tp, type):
            if isinstance(src, tp):
                return src
            if isinstance(src, (str, int, float)) and not isinstance(src, bool):
                # str-constructible types such as Path or Decimal
                return self._coerce(tp, src, tp)
        raise _mismatch(src, tp)

    @staticmethod
    def _coerce(fn: Callable[[Any], Any], src: Any, tp: Any) -> Any:
        try:
            return fn(src)
        except (TypeError, ValueError, ArithmeticError, OSError) as exc:
            raise _mismatch(src, tp, str(exc)) from exc


def _holds(value: Any, tp: Any) -> bool:
    tp = get_origin(tp) or tp
    return isinstance(tp, type) and isinstance(value, tp)


def _to_bool(src: Any, tp: Any) -> bool:
    if isinstance(src, bool):
        return src
    if isinstance(src, str):
        text = src.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise _mismatch(src, tp)


def _to_int(src: Any, tp: Any) -> int:
    if isinstance(src, int):
        return int(src)
    if isinstance(src, float):
        if src.is_integer():
            return int(src)
        raise _mismatch(src, tp, f"{src!r} is not integral")
    if isinstance(src, str):
        text = src.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return int(text, 0)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError as exc:
            raise _mismatch(src, tp, f"invalid integer {src!r}") from exc
        if number.is_integer():
            return int(number)
        raise _mismatch(src, tp, f"{src!r} is not integral")
    raise _mismatch(src, tp)


def _to_enum(src: Any, tp: Any) -> Any:
    try:
        return tp(src)
    except ValueError:
        pass
    if isinstance(src, str):
        if src in tp.__members__:
            return tp[src]
        for name, member in tp.__members__.items():
            if name.lower() == src.lower():
                return member
    raise _mismatch(src, tp, f"{src!r} is not a valid {tp.__name__}")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return to_time(value).date()
