"""Number, string and timestamp literals of the query language."""

from __future__ import annotations

import math
import re
import string
from dataclasses import dataclass

from promqlcore.labels import _go_quote

_INT_RE = re.compile(
    r"[+-]?(?:0[xX](?:_?[0-9a-fA-F])+|0[bB](?:_?[01])+|0[oO](?:_?[0-7])+"
    r"|0(?:_?[0-7])*|[1-9](?:_?[0-9])*)"
)
_DEC_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_HEX_FLOAT_RE = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)[pP][+-]?[0-9]+"
)
_INF_RE = re.compile(r"([+-]?)(?:inf|infinity)", re.IGNORECASE)
_NAN_RE = re.compile(r"nan", re.IGNORECASE)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_SIMPLE_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "n": 0x0A,
    "r": 0x0D,
    "t": 0x09,
    "v": 0x0B,
    "\\": 0x5C,
}
_HEX_WIDTHS = {"x": 2, "u": 4, "U": 8}
_OCTAL_DIGITS = "01234567"


@dataclass(frozen=True)
class SequenceValue:
    """A value in a sequence of series values, possibly omitted."""

    value: float = 0.0
    omitted: bool = False

    def __str__(self) -> str:
        if self.omitted:
            return "_"
        if math.isnan(self.value):
            return "NaN"
        if math.isinf(self.value):
            return "+Inf" if self.value > 0 else "-Inf"
        return f"{self.value:f}"


def _underscore_ok(text: str) -> bool:
    """Whether underscores in a numeric literal only separate digits."""
    if text[:1] in ("+", "-"):
        text = text[1:]
    saw = "^"
    index = 0
    is_hex = False
    if len(text) >= 2 and text[0] == "0" and text[1].lower() in "box":
        index = 2
        saw = "0"
        is_hex = text[1].lower() == "x"
    for char in text[index:]:
        if char.isascii() and (char.isdigit() or (is_hex and char.lower() in "abcdef")):
            saw = "0"
            continue
        if char == "_":
            if saw != "0":
                return False
            saw = "_"
            continue
        if saw == "_":
            return False
        saw = "!"
    return saw != "_"


def _parse_int(text: str) -> int | None:
    if _INT_RE.fullmatch(text) is None:
        return None
    digits = text.replace("_", "")
    sign = -1 if digits.startswith("-") else 1
    digits = digits.lstrip("+-")
    prefix = digits[:2].lower()
    if prefix == "0x":
        value = int(digits, 16)
    elif prefix == "0b":
        value = int(digits, 2)
    elif prefix == "0o" or (len(digits) > 1 and digits[0] == "0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    value *= sign
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _parse_float(text: str) -> float:
    invalid = ValueError(f"parsing {_go_quote(text)}: invalid syntax")
    out_of_range = ValueError(f"parsing {_go_quote(text)}: value out of range")

    special = _INF_RE.fullmatch(text)
    if special is not None:
        return -math.inf if special.group(1) == "-" else math.inf
    if _NAN_RE.fullmatch(text) is not None:
        return math.nan

    cleaned = text
    if "_" in text:
        if not _underscore_ok(text):
            raise invalid
        cleaned = text.replace("_", "")

    if _HEX_FLOAT_RE.fullmatch(cleaned) is not None:
        try:
            return float.fromhex(cleaned)
        except OverflowError:
            raise out_of_range from None
    if _DEC_FLOAT_RE.fullmatch(cleaned) is None:
        raise invalid
    value = float(cleaned)
    if math.isinf(value):
        raise out_of_range
    return value


def parse_number(text: str) -> float:
    """Parse an integer (decimal, hex, octal or binary) or floating-point literal."""
    as_int = _parse_int(text)
    if as_int is not None:
        return float(as_int)
    return _parse_float(text)


def timestamp_from_seconds(seconds: float) -> int:
    """Convert seconds to milliseconds, rounding halves away from zero."""
    millis = seconds * 1000
    if not math.isfinite(millis):
        raise ValueError(f"timestamp out of bounds: {seconds}")
    whole = math.trunc(millis)
    if abs(millis - whole) >= 0.5:
        whole += 1 if millis > 0 else -1
    return int(whole)


def _encode(char: str) -> bytes:
    try:
        return char.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        raise ValueError("invalid syntax") from None


def unquote(text: str) -> str:
    """Interpret a single-, double- or backtick-quoted string literal.

    Bytes escaped with ``\\x`` or octal escapes that do not form valid UTF-8
    are kept as surrogate escapes.
    """
    syntax_error = ValueError("invalid syntax")
    if len(text) < 2:
        raise syntax_error
    quote = text[0]
    if quote != text[-1]:
        raise syntax_error
    body = text[1:-1]

    if quote == "`":
        if "`" in body:
            raise syntax_error
        return body
    if quote not in ("'", '"'):
        raise syntax_error
    if "\n" in body:
        raise syntax_error
    if "\\" not in body and quote not in body:
        return body

    out = bytearray()
    index = 0
    while index < len(body):
        char = body[index]
        if char == quote:
            raise syntax_error
        if char != "\\":
            out += _encode(char)
            index += 1
            continue
        if index + 1 >= len(body):
            raise syntax_error
        escape = body[index + 1]
        index += 2
        if escape in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[escape])
        elif escape in _HEX_WIDTHS:
            width = _HEX_WIDTHS[escape]
            digits = body[index : index + width]
            if len(digits) < width or any(d not in string.hexdigits for d in digits):
                raise syntax_error
            index += width
            code = int(digits, 16)
            if escape == "x":
                out.append(code)
                continue
            if code > 0x10FFFF:
                raise syntax_error
            if 0xD800 <= code <= 0xDFFF:
                code = 0xFFFD
            out += chr(code).encode("utf-8")
        elif escape in _OCTAL_DIGITS:
            digits = body[index : index + 2]
            if len(digits) < 2 or any(d not in _OCTAL_DIGITS for d in digits):
                raise syntax_error
            index += 2
            code = int(escape + digits, 8)
            if code > 255:
                raise syntax_error
            out.append(code)
        elif escape in ("'", '"'):
            if escape != quote:
                raise syntax_error
            out.append(ord(escape))
        else:
            raise syntax_error
    return out.decode("utf-8", "surrogateescape")