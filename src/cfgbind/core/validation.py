"""Constraint checks for bound records, backed by pydantic."""

from __future__ import annotations

import dataclasses
import logging
from functools import lru_cache
from typing import Annotated, Any, List, Tuple, Type

from pydantic import BaseModel, ConfigDict, StringConstraints, create_model
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .fields import is_record_type

logger = logging.getLogger(__name__)

Email = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]
"""A string shaped like an e-mail address (``local@domain.tld``)."""


@lru_cache(maxsize=None)
def _model_for(tp: type) -> Type[BaseModel]:
    return create_model(
        f"{tp.__name__}Check",
        __config__=ConfigDict(arbitrary_types_allowed=True),
        value=(tp, ...),
    )


def _plain(value: Any) -> Any:
    # asdict() would deep-copy leaves such as storages
    if is_record_type(type(value)):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return type(value)(_plain(v) for v in value)
    return value


def _location(loc: Tuple[Any, ...]) -> str:
    out = ""
    for part in loc[1:]:
        if isinstance(part, int):
            out += f"[{part}]"
        elif out:
            out += f".{part}"
        else:
            out = str(part)
    return out


def validate(value: Any) -> Any:
    """Check ``value`` against the constraints declared on its fields.

    Only dataclass instances are checked; anything else passes through.
    Nested records, lists and dicts are checked recursively.

    Raises:
        ValidationError: Listing every violated constraint.
    """
    if not is_record_type(type(value)):
        return value
    model = _model_for(type(value))
    try:
        model.model_validate({"value": _plain(value)})
    except PydanticValidationError as exc:
        errors: List[Tuple[str, str]] = [
            (_location(tuple(err["loc"])), err["msg"]) for err in exc.errors()
        ]
        logger.debug("%s failed validation: %s", type(value).__name__, errors)
        raise ValidationError(errors) from exc
    return value
