from .convert import Converter
from .errors import CfgBindError, CompositionError, ConversionError, PathError, RegistryError, ValidationError
from .fields import config_field
from .path import PathSegment, format_path, parse_path
from .storage import Storage

__all__ = [
    "Converter",
    "Storage",
    "PathSegment",
    "parse_path",
    "format_path",
    "config_field",
    "CfgBindError",
    "ConversionError",
    "PathError",
    "ValidationError",
    "CompositionError",
    "RegistryError",
]
