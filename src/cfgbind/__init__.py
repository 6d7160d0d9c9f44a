"""cfgbind - hierarchical configuration storage and typed binding.

Wrap decoded configuration (nested trees or flat key/value pairs) in a
storage, address sub-sections with dotted paths, and bind them into
dataclasses with defaults, coercion and validation.
"""

from .core.errors import (
    CfgBindError,
    CompositionError,
    ConversionError,
    PathError,
    RegistryError,
    ValidationError,
)
from .core.fields import config_field
from .core.registry import TypeOptions
from .core.storage import Storage
from .core.validation import Email
from .storages.composite import CompositeStorage
from .storages.flat import FlatStorage
from .storages.tree import TreeStorage
from .storages.validating import ValidatingStorage

__all__ = [
    "Storage",
    "TreeStorage",
    "FlatStorage",
    "CompositeStorage",
    "ValidatingStorage",
    "TypeOptions",
    "config_field",
    "Email",
    "CfgBindError",
    "ConversionError",
    "PathError",
    "ValidationError",
    "CompositionError",
    "RegistryError",
]
