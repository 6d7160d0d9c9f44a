"""Process-wide registry of constructors addressed by namespace and type name.

A configuration document names *what* to build (``namespace`` + ``type``) and
carries the options for it as an unbound storage. ``new`` looks up the
constructor and binds the options into whatever its parameter asks for.
"""

from __future__ import annotations

import inspect
import logging
import threading
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .convert import Converter, is_storage_type
from .errors import RegistryError
from .fields import is_record_type, optional_inner, strip_annotated
from .storage import Storage
from .value import MISSING

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_constructors: Dict[Tuple[str, str], Callable[..., Any]] = {}


@dataclass
class TypeOptions:
    """Reference to a registered constructor plus its still-unbound options."""

    namespace: str = ""
    type: str = ""
    options: Optional[Storage] = None


def register(namespace: str, type_name: str, constructor: Callable[..., Any]) -> None:
    key = (namespace, type_name)
    with _lock:
        if key in _constructors:
            raise RegistryError(f"constructor already registered for {namespace}/{type_name}")
        _constructors[key] = constructor
    logger.debug("registered constructor %s/%s", namespace, type_name)


def unregister(namespace: str, type_name: str) -> bool:
    with _lock:
        removed = _constructors.pop((namespace, type_name), None) is not None
    if removed:
        logger.debug("unregistered constructor %s/%s", namespace, type_name)
    return removed


def is_registered(namespace: str, type_name: str) -> bool:
    with _lock:
        return (namespace, type_name) in _constructors


def _lookup(namespace: str, type_name: str) -> Callable[..., Any]:
    with _lock:
        constructor = _constructors.get((namespace, type_name))
    if constructor is None:
        raise RegistryError(f"no constructor registered for {namespace}/{type_name}")
    return constructor


def _options_type(constructor: Callable[..., Any]) -> Any:
    """Annotation of the constructor's single parameter, or ``None``."""
    params = [
        p
        for p in inspect.signature(constructor).parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.default is p.empty
    ]
    if not params:
        return None
    if len(params) > 1:
        raise RegistryError(f"constructor {constructor!r} must take at most one required parameter")
    target = constructor.__init__ if inspect.isclass(constructor) else constructor
    try:
        hints = typing.get_type_hints(target)
    except (NameError, TypeError):
        hints = {}
    annotation = hints.get(params[0].name, params[0].annotation)
    if annotation is inspect.Parameter.empty:
        return Any
    annotation = strip_annotated(annotation)
    return optional_inner(annotation) or annotation


def _bind_options(options: Optional[Storage], tp: type) -> Any:
    if options is None or options.is_nil:
        # nil storages bind nothing; start from a defaulted record
        return Converter().bind_record(MISSING, tp)
    return options.convert_to(tp)


def new(namespace: str, type_name: str, options: Optional[Storage] = None) -> Any:
    """Build the object registered under ``namespace``/``type_name``.

    Args:
        namespace: Registry namespace.
        type_name: Type name within the namespace.
        options: Unbound options for the constructor.

    Raises:
        RegistryError: If nothing is registered under the name.
        ConversionError: If the options do not fit the constructor's record.
    """
    constructor = _lookup(namespace, type_name)
    logger.debug("building %s/%s", namespace, type_name)
    if is_record_type(constructor):
        return _bind_options(options, constructor)

    param_type = _options_type(constructor)
    if param_type is None:
        return constructor()
    if is_record_type(param_type):
        return constructor(_bind_options(options, param_type))
    if is_storage_type(param_type) or param_type is Any:
        return constructor(options)
    raise RegistryError(
        f"constructor for {namespace}/{type_name} takes an unsupported parameter type {param_type!r}"
    )


def new_from_options(type_options: TypeOptions) -> Any:
    return new(type_options.namespace, type_options.type, type_options.options)
