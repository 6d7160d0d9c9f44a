"""Duration and timestamp coercion."""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%H:%M:%S",
)

_FRACTION = re.compile(r"\.(\d{7,})")


def parse_duration(text: str) -> timedelta:
    """Parse interval strings like ``30s``, ``1h30m``, ``1.5h`` or ``-300ms``.

    Raises:
        ValueError: If ``text`` is not a valid interval.
    """
    s = text.strip()
    if not s:
        raise ValueError(f"invalid duration {text!r}")
    sign = 1
    if s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)

    pos = 0
    nanos = 0.0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if m is None:
            raise ValueError(f"invalid duration {text!r}")
        nanos += float(m.group(1)) * _UNIT_NANOS[m.group(2)]
        pos = m.end()
    if pos == 0:
        raise ValueError(f"invalid duration {text!r}")
    return nanos_to_timedelta(sign * nanos)


def nanos_to_timedelta(nanos: float) -> timedelta:
    # timedelta resolution is one microsecond
    return timedelta(microseconds=round(nanos / 1000))


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the same grammar ``parse_duration`` accepts."""
    micros = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    hours, rem = divmod(micros, 3600 * 1_000_000)
    minutes, rem = divmod(rem, 60 * 1_000_000)
    seconds, micros = divmod(rem, 1_000_000)
    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    if seconds or micros:
        if micros:
            out += f"{seconds}.{micros:06d}".rstrip("0") + "s"
        else:
            out += f"{seconds}s"
    return sign + out


def to_duration(value: Any) -> timedelta:
    """Coerce a dynamic value into a timedelta.

    Strings use the interval grammar, integers are nanoseconds and floats are
    seconds.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to timedelta")
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, int):
        return nanos_to_timedelta(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"invalid duration {value!r}")
        return timedelta(seconds=value)
    raise TypeError(f"cannot convert {type(value).__name__} to timedelta")


def parse_time(text: str) -> datetime:
    """Parse a timestamp, trying each of ``TIME_FORMATS`` in order.

    Text without an offset is taken as UTC.
    """
    s = text.strip()
    # strptime's %f stops at microseconds
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6], s)
    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(s, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"failed to parse time {text!r}")


def to_time(value: Any) -> datetime:
    """Coerce a dynamic value into an aware datetime.

    Numbers are Unix timestamps in seconds; the fractional part becomes
    sub-second precision.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to datetime")
    if isinstance(value, str):
        return parse_time(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    raise TypeError(f"cannot convert {type(value).__name__} to datetime")
