"""Parsing of textual default annotations."""

from __future__ import annotations

import collections.abc
import logging
from typing import TYPE_CHECKING, Any, get_args, get_origin

from .errors import ConversionError, type_name
from .fields import is_record_type, optional_inner, strip_annotated
from .value import MISSING

if TYPE_CHECKING:
    from .convert import Converter

logger = logging.getLogger(__name__)

SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Iterable,
    collections.abc.Collection,
)
MAPPING_ORIGINS = (
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)


def parse_default(text: str, tp: Any, converter: "Converter") -> Any:
    """Turn default text into a value of ``tp``.

    Scalars, durations and timestamps go through the regular coercion rules.
    Sequences take a comma-separated literal. Records are allocated with
    their own nested defaults. Mapping defaults are not supported.
    """
    tp = strip_annotated(tp)
    inner = optional_inner(tp)
    if inner is not None:
        return parse_default(text, inner, converter)
    if is_record_type(tp):
        return converter.bind_record(MISSING, tp, MISSING)

    origin = get_origin(tp) or tp
    if origin in SEQUENCE_ORIGINS:
        if origin is tuple and get_args(tp) and get_args(tp)[-1] is not Ellipsis:
            parts = [p.strip() for p in text.split(",")]
        else:
            parts = [p.strip() for p in text.split(",")] if text.strip() else []
        return converter.convert(parts, tp)
    if origin in MAPPING_ORIGINS:
        raise ConversionError(
            "mapping default values are not supported",
            source_type="str",
            target_type=type_name(tp),
        )
    try:
        return converter.convert(text, tp)
    except ConversionError:
        logger.debug("invalid default %r for %s", text, type_name(tp))
        raise
