"""Exception types raised by cfgbind."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple


class CfgBindError(Exception):
    """Base class for every error raised by cfgbind."""


class ConversionError(CfgBindError):
    """A source value cannot be coerced into the requested destination shape.

    Attributes:
        source_type: Name of the source value's type, when known.
        target_type: Name of the destination type, when known.
        path: Dotted field path inside the destination, when known.
        source_index: Index of the composite member that failed, when the
            error was raised while replaying a composite storage.
    """

    def __init__(
        self,
        message: str,
        *,
        source_type: Optional[str] = None,
        target_type: Optional[str] = None,
        path: Optional[str] = None,
        source_index: Optional[int] = None,
    ):
        self.message = message
        self.source_type = source_type
        self.target_type = target_type
        self.path = path
        self.source_index = source_index
        super().__init__(str(self))

    def __str__(self) -> str:
        parts: List[str] = []
        if self.source_index is not None:
            parts.append(f"source {self.source_index}")
        if self.path:
            parts.append(f"field {self.path!r}")
        prefix = ", ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message

    def with_field(self, name: str) -> "ConversionError":
        """Return a copy whose path is prefixed with ``name``."""
        if not self.path:
            path = name
        elif self.path.startswith("["):
            path = f"{name}{self.path}"
        else:
            path = f"{name}.{self.path}"
        return ConversionError(
            self.message,
            source_type=self.source_type,
            target_type=self.target_type,
            path=path,
            source_index=self.source_index,
        )

    def with_source_index(self, index: int) -> "ConversionError":
        return ConversionError(
            self.message,
            source_type=self.source_type,
            target_type=self.target_type,
            path=self.path,
            source_index=index,
        )


class PathError(CfgBindError, ValueError):
    """A path grammar was configured with unusable tokens."""


class ValidationError(CfgBindError):
    """A bound record violates its declared constraints.

    Attributes:
        errors: ``(location, message)`` pairs, one per violation.
    """

    def __init__(self, errors: Sequence[Tuple[str, str]]):
        self.errors: List[Tuple[str, str]] = list(errors)
        lines = [f"{loc}: {msg}" if loc else msg for loc, msg in self.errors]
        super().__init__("validation failed: " + "; ".join(lines))


class CompositionError(CfgBindError):
    """A composite storage was asked to bind into ``None``."""


class RegistryError(CfgBindError):
    """Unknown or duplicate constructor registration."""


def type_name(value: Any) -> str:
    """Readable name of a value's type, or of a typing construct."""
    if isinstance(value, type):
        return value.__name__
    return getattr(value, "__name__", None) or str(value)
