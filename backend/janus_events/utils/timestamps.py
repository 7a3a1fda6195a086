"""Timestamp normalization for Janus event payloads.

Janus and the transports in front of it report ``timestamp`` as an epoch in
seconds, milliseconds, microseconds or nanoseconds, or occasionally as text.
The unit is guessed from the number of digits of the integer part, which is
what historical rows in the database were stored with.
"""

import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

NANOSECONDS = "nanoseconds"
MICROSECONDS = "microseconds"
MILLISECONDS = "milliseconds"
SECONDS = "seconds"

# (minimum digit count, unit, factor to milliseconds), checked in order
_DIGIT_BOUNDARIES = (
    (19, NANOSECONDS, 1e-6),
    (16, MICROSECONDS, 1e-3),
    (13, MILLISECONDS, 1.0),
    (10, SECONDS, 1e3),
)

_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_unit(value: float) -> str:
    """Return the unit an epoch number is assumed to be expressed in."""
    digits = len(str(abs(int(value))))
    for min_digits, unit, _ in _DIGIT_BOUNDARIES:
        if digits >= min_digits:
            return unit
    return SECONDS


def _epoch_to_millis(value: float) -> float:
    unit = epoch_unit(value)
    for _, candidate, factor in _DIGIT_BOUNDARIES:
        if candidate == unit:
            return value * factor
    return value * 1e3


def _from_number(value: float) -> datetime:
    try:
        if not math.isfinite(value):
            return utcnow()
        return datetime.fromtimestamp(_epoch_to_millis(value) / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return utcnow()


def _parse_calendar(raw: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        try:
            dt = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_datetime(value: Any) -> datetime:
    """Normalize an event timestamp; falls back to the current time, never raises."""
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool):
        return utcnow()
    if isinstance(value, (int, float)):
        return _from_number(value)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return utcnow()
        # all-digit text is an epoch, not a compact ISO date
        if not _NUMERIC_TEXT.match(raw):
            parsed = _parse_calendar(raw)
            if parsed is not None:
                return parsed
        try:
            number = float(raw)
        except ValueError:
            return utcnow()
        if number.is_integer() and "." not in raw and "e" not in raw.lower():
            return _from_number(int(raw))
        return _from_number(number)
    return utcnow()
