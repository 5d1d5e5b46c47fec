"""Resolve ``--from`` / ``--to`` style time bounds into concrete instants."""

import re
from datetime import datetime, timedelta, timezone

from .errors import InvalidDuration, UnparseableTime

# Relative duration unit -> timedelta keyword
DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}

# Absolute layouts, tried in order. Offset-less forms are read as UTC.
ABSOLUTE_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
)

# strptime alone accepts unpadded fields and offsets without a colon
_ABSOLUTE_SHAPE = re.compile(
    r"\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?)?"
)

# Poll interval terms, <number><unit> repeated, e.g. 500ms or 1m30s; unit -> seconds
_INTERVAL_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|\u00b5s|ms|s|m|h)")
_INTERVAL_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "\u00b5s": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# strptime's %f takes at most 6 digits, timestamps may carry nanoseconds
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_relative_duration(value: str) -> timedelta:
    """Parse a duration like ``15m``, ``1h``, ``1.5d`` or ``2w``.

    Parameters
    ----------
    value : str
        ``<number><unit>`` where unit is one of s, m, h, d, w. The number may
        be fractional.

    Returns
    -------
    timedelta
        The parsed duration.

    Raises
    ------
    InvalidDuration
        If the number does not parse or the unit is unknown.
    """
    s = value.strip()
    if len(s) < 2:
        raise InvalidDuration(f"invalid duration {value!r}")

    unit, num_str = s[-1], s[:-1]
    try:
        num = float(num_str)
    except ValueError as e:
        raise InvalidDuration(f"invalid duration {value!r}: {e}") from e

    if unit not in DURATION_UNITS:
        raise InvalidDuration(
            f"unknown duration unit {unit!r} in {value!r} (use s, m, h, d, or w)"
        )

    try:
        return timedelta(**{DURATION_UNITS[unit]: num})
    except (ValueError, OverflowError) as e:
        # nan, inf or out of range
        raise InvalidDuration(f"invalid duration {value!r}: {e}") from e


def parse_absolute(value: str) -> datetime:
    """Parse an ISO 8601 timestamp or bare date, assuming UTC when no offset.

    Fields must be zero padded and an offset is ``Z`` or ``+HH:MM``; forms
    like ``2024-1-1`` or ``+0530`` are rejected. Fractional seconds are
    accepted with or without an offset and truncated to microseconds.
    """
    if not _ABSOLUTE_SHAPE.fullmatch(value):
        raise UnparseableTime(value)

    candidate = _EXTRA_FRACTION.sub(r"\1", value)
    for layout in ABSOLUTE_LAYOUTS:
        try:
            parsed = datetime.strptime(candidate, layout)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise UnparseableTime(value)


def parse_interval(value: str) -> float:
    """Parse a poll interval into seconds.

    Accepts plain seconds (``2``, ``0.5``) or a sequence of
    ``<number><unit>`` terms with units ns, us, ms, s, m, h (``500ms``,
    ``1m30s``). Days and weeks are also accepted as a single term (``1d``).

    Raises
    ------
    InvalidDuration
        If the value matches none of these forms.
    """
    s = value.strip()
    try:
        return float(s)
    except ValueError:
        pass

    terms = _INTERVAL_TERM.findall(s)
    if terms and "".join(num + unit for num, unit in terms) == s:
        return sum(float(num) * _INTERVAL_UNITS[unit] for num, unit in terms)

    return parse_relative_duration(s).total_seconds()


def parse_relative_or_absolute(value: str, now: datetime) -> datetime:
    """Turn a textual time bound into an instant.

    Accepts ``""`` or ``"now"`` (returns ``now``), a relative duration which
    is subtracted from ``now``, or an absolute timestamp. Relative durations
    are always tried first.

    Parameters
    ----------
    value : str
        The user supplied bound, e.g. ``"15m"`` or ``"2024-01-01T00:00:00Z"``.
    now : datetime
        Reference instant, injectable for deterministic tests.

    Raises
    ------
    UnparseableTime
        If the value matches none of the accepted forms.
    InvalidDuration
        If a valid duration reaches further back than ``datetime.min``.
    """
    if value == "" or value == "now":
        return now

    try:
        delta = parse_relative_duration(value)
    except InvalidDuration:
        return parse_absolute(value)

    try:
        return now - delta
    except OverflowError as e:
        raise InvalidDuration(f"duration {value!r} reaches before year 1") from e
