"""Storage implementations.

Tree storages wrap decoded nested documents (YAML, JSON, TOML), flat
storages wrap key/value pairs (environment variables, command-line
overrides), and the composite and validating storages layer on top of
either.
"""

from .composite import CompositeStorage
from .flat import FlatStorage
from .tree import TreeStorage
from .validating import ValidatingStorage

__all__ = [
    "TreeStorage",
    "FlatStorage",
    "CompositeStorage",
    "ValidatingStorage",
]
