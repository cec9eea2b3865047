"""Parsing and formatting of durations such as ``5m`` or ``1h30m``."""

from __future__ import annotations

import re
from datetime import timedelta

from promqlcore.labels import _go_quote

_DURATION_RE = re.compile(
    r"(?:([0-9]+)y)?(?:([0-9]+)w)?(?:([0-9]+)d)?(?:([0-9]+)h)?"
    r"(?:([0-9]+)m)?(?:([0-9]+)s)?(?:([0-9]+)ms)?"
)

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_MS_PER_DAY = 24 * _MS_PER_HOUR
_MS_PER_WEEK = 7 * _MS_PER_DAY
_MS_PER_YEAR = 365 * _MS_PER_DAY

# Multipliers in the order of the groups of _DURATION_RE.
_UNIT_MS = (
    _MS_PER_YEAR,
    _MS_PER_WEEK,
    _MS_PER_DAY,
    _MS_PER_HOUR,
    _MS_PER_MINUTE,
    _MS_PER_SECOND,
    1,
)

# Durations are bounded by a signed 64-bit count of nanoseconds.
_MAX_NANOSECONDS = 2**63 - 1
_NS_PER_MS = 1_000_000

# Units used when formatting; years and weeks only when they divide exactly.
_FORMAT_UNITS = (
    ("y", _MS_PER_YEAR, True),
    ("w", _MS_PER_WEEK, True),
    ("d", _MS_PER_DAY, False),
    ("h", _MS_PER_HOUR, False),
    ("m", _MS_PER_MINUTE, False),
    ("s", _MS_PER_SECOND, False),
    ("ms", 1, False),
)


def _truncated_millis(duration: timedelta) -> int:
    micros = (duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds
    millis = abs(micros) // 1000
    return millis if micros >= 0 else -millis


def parse_duration(text: str) -> timedelta:
    """Parse a duration string; ``"0"`` is accepted without a unit."""
    if text == "0":
        return timedelta(0)
    if text == "":
        raise ValueError("empty duration string")
    match = _DURATION_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"not a valid duration string: {_go_quote(text)}")

    total_ms = 0
    overflow = False
    for digits, multiplier in zip(match.groups(), _UNIT_MS):
        if digits is None:
            continue
        count = int(digits)
        if count > _MAX_NANOSECONDS // multiplier // _NS_PER_MS:
            overflow = True
        total_ms += count * multiplier
    if overflow or total_ms * _NS_PER_MS > _MAX_NANOSECONDS:
        raise ValueError("duration out of range")
    return timedelta(milliseconds=total_ms)


def parse_positive_duration(text: str) -> timedelta:
    """Parse a duration string and reject a duration of zero."""
    duration = parse_duration(text)
    if duration == timedelta(0):
        raise ValueError("duration must be greater than 0")
    return duration


def format_duration(duration: timedelta) -> str:
    """Format a duration in the same notation that parse_duration reads."""
    remaining = _truncated_millis(duration)
    if remaining == 0:
        return "0s"
    parts = []
    for unit, multiplier, exact in _FORMAT_UNITS:
        if exact and remaining % multiplier != 0:
            continue
        count = remaining // multiplier if remaining >= 0 else 0
        if count > 0:
            parts.append(f"{count}{unit}")
            remaining -= count * multiplier
    return "".join(parts)