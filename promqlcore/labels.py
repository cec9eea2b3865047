"""Label matchers used by vector selectors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

METRIC_NAME = "__name__"

_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _go_quote(text: str) -> str:
    """Quote a string with double quotes and escapes for non-printable runes."""
    parts = ['"']
    for ch in text:
        code = ord(ch)
        if ch in _ESCAPES:
            parts.append(_ESCAPES[ch])
        elif ch.isprintable() and not 0xD800 <= code <= 0xDFFF:
            parts.append(ch)
        elif code < 0x20 or code == 0x7F:
            parts.append(f"\\x{code:02x}")
        elif 0xD800 <= code <= 0xDFFF:
            parts.append("\\ufffd")
        elif code < 0x10000:
            parts.append(f"\\u{code:04x}")
        else:
            parts.append(f"\\U{code:08x}")
    parts.append('"')
    return "".join(parts)


class MatchType(Enum):
    """How a label matcher compares a label value."""

    EQUAL = "="
    NOT_EQUAL = "!="
    REGEXP = "=~"
    NOT_REGEXP = "!~"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Matcher:
    """A condition on the value of one label."""

    match_type: MatchType
    name: str
    value: str
    _pattern: re.Pattern | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        match_type = MatchType(self.match_type)
        object.__setattr__(self, "match_type", match_type)
        if match_type in (MatchType.REGEXP, MatchType.NOT_REGEXP):
            try:
                pattern = re.compile(f"(?:{self.value})")
            except re.error as exc:
                raise ValueError(f"error parsing regexp: {exc}") from exc
            object.__setattr__(self, "_pattern", pattern)

    def matches(self, value: str) -> bool:
        """Return whether the given label value satisfies this matcher."""
        if self.match_type is MatchType.EQUAL:
            return value == self.value
        if self.match_type is MatchType.NOT_EQUAL:
            return value != self.value
        found = self._pattern.fullmatch(value) is not None
        if self.match_type is MatchType.REGEXP:
            return found
        return not found

    def __str__(self) -> str:
        return f"{self.name}{self.match_type}{_go_quote(self.value)}"


def must_label_matcher(match_type: MatchType, name: str, value: str) -> Matcher:
    """Build a matcher; raises ValueError when the regular expression is invalid."""
    return Matcher(match_type, name, value)