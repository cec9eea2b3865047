"""Value types produced by query evaluation."""

from __future__ import annotations

from enum import Enum


class ValueType(str, Enum):
    """The type of a value resulting from evaluating an expression."""

    NONE = "none"
    VECTOR = "vector"
    SCALAR = "scalar"
    MATRIX = "matrix"
    STRING = "string"

    def __str__(self) -> str:
        return self.value


def documented_type(t: ValueType) -> str:
    """Return the user-facing name of a value type, as used in documentation."""
    if t is ValueType.VECTOR:
        return "instant vector"
    if t is ValueType.MATRIX:
        return "range vector"
    return ValueType(t).value