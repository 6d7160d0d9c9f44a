"""Path grammar shared by every storage: ``a.b.c``, ``a[3]``, ``a.b[2].c``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Tuple

from .errors import PathError

DEFAULT_SEPARATOR = "."
DEFAULT_BRACKETS = ("[", "]")
DEFAULT_INDEX_FORMAT = "[%d]"


@dataclass(frozen=True)
class PathSegment:
    """One step of a path.

    Attributes:
        key: Raw text of the segment (member name, or the text between
            brackets for index segments).
        index: Parsed list index; ``None`` for member segments and for index
            segments whose text is not a non-negative integer.
        is_index: Whether the segment was written in index form.
    """

    key: str
    index: Optional[int] = None
    is_index: bool = False

    @classmethod
    def member(cls, key: str) -> "PathSegment":
        return cls(key=key)

    @classmethod
    def at(cls, text: str) -> "PathSegment":
        index = int(text) if text.isascii() and text.isdigit() else None
        return cls(key=text, index=index, is_index=True)


@lru_cache(maxsize=1024)
def parse_path(
    path: str,
    separator: str = DEFAULT_SEPARATOR,
    brackets: Tuple[str, str] = DEFAULT_BRACKETS,
) -> Tuple[PathSegment, ...]:
    """Split ``path`` into segments.

    A member immediately followed by an index (``a[0]``) yields two segments.
    Separators inside brackets belong to the index text. Malformed index text
    is kept as a segment with ``index=None`` so lookups miss instead of raising.
    """
    if not separator:
        raise PathError("path separator must not be empty")
    open_tok, close_tok = brackets
    if not open_tok or not close_tok:
        raise PathError("index brackets must not be empty")

    segments: List[PathSegment] = []
    current = ""
    in_bracket = False
    i = 0
    n = len(path)
    while i < n:
        if not in_bracket and path.startswith(separator, i):
            if current:
                segments.append(PathSegment.member(current))
                current = ""
            i += len(separator)
        elif not in_bracket and path.startswith(open_tok, i):
            if current:
                segments.append(PathSegment.member(current))
                current = ""
            in_bracket = True
            i += len(open_tok)
        elif in_bracket and path.startswith(close_tok, i):
            segments.append(PathSegment.at(current.strip()))
            current = ""
            in_bracket = False
            i += len(close_tok)
        else:
            current += path[i]
            i += 1

    if in_bracket:
        # unterminated bracket never matches anything
        segments.append(PathSegment(key=current, index=None, is_index=True))
    elif current:
        segments.append(PathSegment.member(current))
    return tuple(segments)


def check_index_format(index_format: str) -> Tuple[str, str]:
    """Split an index template such as ``[%d]`` or ``_%d`` around ``%d``."""
    if index_format.count("%d") != 1 or "%" in index_format.replace("%d", ""):
        raise ValueError(f"index format must contain exactly one %d: {index_format!r}")
    head, tail = index_format.split("%d")
    if not head and not tail:
        raise ValueError("index format must wrap %d with at least one token")
    return head, tail


def format_path(
    segments: Iterable[PathSegment],
    separator: str = DEFAULT_SEPARATOR,
    index_format: str = DEFAULT_INDEX_FORMAT,
) -> Optional[str]:
    """Render segments as a flattened key, or ``None`` if an index is invalid."""
    out = ""
    for seg in segments:
        if seg.is_index:
            if seg.index is None:
                return None
            out += index_format % seg.index
        elif out:
            out += separator + seg.key
        else:
            out = seg.key
    return out


@lru_cache(maxsize=64)
def index_pattern(index_format: str, separator: str) -> Pattern[str]:
    """Regex matching one index token at the current position.

    The token must be followed by the end of the key, the separator, or
    another index token, so ``_1st`` is not read as index ``1``.
    """
    head, tail = check_index_format(index_format)
    follow = "|".join(
        re.escape(tok) for tok in (separator, head) if tok
    )
    lookahead = f"(?=$|{follow})" if follow else "(?=$)"
    return re.compile(re.escape(head) + r"(\d+)" + re.escape(tail) + lookahead)
