"""Syntax tree of query expressions, with printing and pretty-printing."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from promqlcore.durations import format_duration
from promqlcore.errors import PositionRange
from promqlcore.labels import METRIC_NAME, Matcher, MatchType, _go_quote
from promqlcore.value import ValueType

DEFAULT_MAX_WIDTH = 100
_INDENT = "  "
_NO_POSITION = PositionRange(0, 0)

AGGREGATORS = frozenset(
    {
        "sum", "avg", "count", "min", "max", "group", "stddev", "stdvar",
        "topk", "bottomk", "count_values", "quantile",
    }
)
AGGREGATORS_WITH_PARAM = frozenset({"topk", "bottomk", "count_values", "quantile"})
COMPARISON_OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">="})
SET_OPERATORS = frozenset({"and", "or", "unless"})
BINARY_OPERATORS = (
    frozenset({"+", "-", "*", "/", "%", "^", "atan2"})
    | COMPARISON_OPERATORS
    | SET_OPERATORS
)


class StartOrEnd(Enum):
    """Preprocessor of the @ modifier."""

    START = "start"
    END = "end"


class VectorMatchCardinality(Enum):
    """Cardinality of the match between two vectors of a binary operation."""

    ONE_TO_ONE = "one-to-one"
    MANY_TO_ONE = "many-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


@dataclass
class VectorMatching:
    """How the series of two vectors are matched in a binary operation."""

    card: VectorMatchCardinality = VectorMatchCardinality.ONE_TO_ONE
    matching_labels: list[str] = field(default_factory=list)
    on: bool = False
    include: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Function:
    """Signature of a function that may be called in an expression."""

    name: str
    arg_types: tuple[ValueType, ...] = ()
    variadic: int = 0
    return_type: ValueType = ValueType.VECTOR


def _format_float(value: float) -> str:
    """Format a float in the shortest form, switching to exponents like %g."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    text = "".join(map(str, digits))
    count = len(digits)
    point = exponent + count
    exp = point - 1
    neg = "-" if sign else ""
    if exp < -4 or exp >= 6:
        mantissa = text[0] + ("." + text[1:] if count > 1 else "")
        return f"{neg}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if point <= 0:
        return f"{neg}0.{'0' * -point}{text}"
    if point >= count:
        return f"{neg}{text}{'0' * (point - count)}"
    return f"{neg}{text[:point]}.{text[point:]}"


def _indent(level: int) -> str:
    return _INDENT * level


def _needs_split(node: object, max_width: int) -> bool:
    return node is not None and len(str(node)) > max_width


def _offset_str(offset: timedelta) -> str:
    if offset > timedelta(0):
        return f" offset {format_duration(offset)}"
    if offset < timedelta(0):
        return f" offset -{format_duration(-offset)}"
    return ""


def _at_str(timestamp: int | None, start_or_end: StartOrEnd | None) -> str:
    if timestamp is not None:
        return f" @ {timestamp / 1000.0:.3f}"
    if start_or_end is StartOrEnd.START:
        return " @ start()"
    if start_or_end is StartOrEnd.END:
        return " @ end()"
    return ""


class _Node:
    """Behaviour shared by all nodes of the tree."""

    def position_range(self) -> PositionRange:
        raise NotImplementedError

    def children(self) -> list:
        return []

    def value_type(self) -> ValueType:
        return ValueType.NONE

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return _indent(level) + str(self)


@dataclass
class NumberLiteral(_Node):
    """A floating-point number."""

    val: float
    pos_range: PositionRange = _NO_POSITION

    def __str__(self) -> str:
        return _format_float(self.val)

    def position_range(self) -> PositionRange:
        return self.pos_range

    def value_type(self) -> ValueType:
        return ValueType.SCALAR

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return _indent(level) + str(self)


@dataclass
class StringLiteral(_Node):
    """A string."""

    val: str
    pos_range: PositionRange = _NO_POSITION

    def __str__(self) -> str:
        return _go_quote(self.val)

    def position_range(self) -> PositionRange:
        return self.pos_range

    def value_type(self) -> ValueType:
        return ValueType.STRING

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return _indent(level) + str(self)


@dataclass
class VectorSelector(_Node):
    """Selection of series by metric name and label matchers."""

    name: str = ""
    label_matchers: list[Matcher] = field(default_factory=list)
    original_offset: timedelta = timedelta(0)
    timestamp: int | None = None
    start_or_end: StartOrEnd | None = None
    pos_range: PositionRange = _NO_POSITION

    def __str__(self) -> str:
        label_strings = sorted(
            str(matcher)
            for matcher in self.label_matchers
            if not (
                matcher.name == METRIC_NAME
                and matcher.match_type is MatchType.EQUAL
                and matcher.value == self.name
            )
        )
        suffix = _at_str(self.timestamp, self.start_or_end) + _offset_str(
            self.original_offset
        )
        if not label_strings:
            return f"{self.name}{suffix}"
        return f"{self.name}{{{','.join(label_strings)}}}{suffix}"

    def position_range(self) -> PositionRange:
        return self.pos_range

    def value_type(self) -> ValueType:
        return ValueType.VECTOR

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return _indent(level) + str(self)


@dataclass
class MatrixSelector(_Node):
    """A vector selector over a range of time."""

    vector_selector: _Node
    range: timedelta
    end_pos: int = 0

    def __str__(self) -> str:
        selector = self.vector_selector
        if not isinstance(selector, VectorSelector):
            raise TypeError("ranges only allowed for vector selectors")
        at = _at_str(selector.timestamp, selector.start_or_end)
        offset = _offset_str(selector.original_offset)
        bare = dataclasses.replace(
            selector, original_offset=timedelta(0), timestamp=None, start_or_end=None
        )
        return f"{bare}[{format_duration(self.range)}]{at}{offset}"

    def position_range(self) -> PositionRange:
        return PositionRange(self.vector_selector.position_range().start, self.end_pos)

    def children(self) -> list:
        return [self.vector_selector]

    def value_type(self) -> ValueType:
        return ValueType.MATRIX

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return _indent(level) + str(self)


@dataclass
class SubqueryExpr(_Node):
    """An expression evaluated over a range at a given resolution."""

    expr: _Node
    range: timedelta
    step: timedelta = timedelta(0)
    original_offset: timedelta = timedelta(0)
    timestamp: int | None = None
    start_or_end: StartOrEnd | None = None
    end_pos: int = 0

    def _time_suffix(self) -> str:
        step = format_duration(self.step) if self.step != timedelta(0) else ""
        at = _at_str(self.timestamp, self.start_or_end)
        offset = _offset_str(self.original_offset)
        return f"[{format_duration(self.range)}:{step}]{at}{offset}"

    def __str__(self) -> str:
        return f"{self.expr}{self._time_suffix()}"

    def position_range(self) -> PositionRange:
        return PositionRange(self.expr.position_range().start, self.end_pos)

    def children(self) -> list:
        return [self.expr]

    def value_type(self) -> ValueType:
        return ValueType.MATRIX

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        if not _needs_split(self, max_width):
            return str(self)
        return self.expr.pretty(level, max_width) + self._time_suffix()


@dataclass
class ParenExpr(_Node):
    """An expression in parentheses."""

    expr: _Node
    pos_range: PositionRange = _NO_POSITION

    def __str__(self) -> str:
        return f"({self.expr})"

    def position_range(self) -> PositionRange:
        return self.pos_range

    def children(self) -> list:
        return [self.expr]

    def value_type(self) -> ValueType:
        return self.expr.value_type()

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        prefix = _indent(level)
        if not _needs_split(self, max_width):
            return prefix + str(self)
        return f"{prefix}(\n{self.expr.pretty(level + 1, max_width)}\n{prefix})"


@dataclass
class UnaryExpr(_Node):
    """A unary plus or minus applied to an expression."""

    op: str
    expr: _Node
    start_pos: int = 0

    def __str__(self) -> str:
        return f"{self.op}{self.expr}"

    def position_range(self) -> PositionRange:
        return PositionRange(self.start_pos, self.expr.position_range().end)

    def children(self) -> list:
        return [self.expr]

    def value_type(self) -> ValueType:
        return self.expr.value_type()

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        child = self.expr.pretty(level, max_width).strip()
        return f"{_indent(level)}{self.op}{child}"


@dataclass
class BinaryExpr(_Node):
    """A binary operation between two expressions."""

    op: str
    lhs: _Node
    rhs: _Node
    vector_matching: VectorMatching | None = None
    return_bool: bool = False

    def _matching_str(self) -> str:
        matching = self.vector_matching
        if matching is None or not (matching.matching_labels or matching.on):
            return ""
        tag = "on" if matching.on else "ignoring"
        text = f" {tag} ({', '.join(matching.matching_labels)})"
        if matching.card in (
            VectorMatchCardinality.MANY_TO_ONE,
            VectorMatchCardinality.ONE_TO_MANY,
        ):
            side = "left" if matching.card is VectorMatchCardinality.MANY_TO_ONE else "right"
            text += f" group_{side} ({', '.join(matching.include)})"
        return text

    def _operator_str(self) -> str:
        return_bool = " bool" if self.return_bool else ""
        return f"{self.op}{return_bool}{self._matching_str()}"

    def __str__(self) -> str:
        return f"{self.lhs} {self._operator_str()} {self.rhs}"

    def position_range(self) -> PositionRange:
        return PositionRange(
            self.lhs.position_range().start, self.rhs.position_range().end
        )

    def children(self) -> list:
        return [self.lhs, self.rhs]

    def value_type(self) -> ValueType:
        if (
            self.lhs.value_type() is ValueType.SCALAR
            and self.rhs.value_type() is ValueType.SCALAR
        ):
            return ValueType.SCALAR
        return ValueType.VECTOR

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        if not _needs_split(self, max_width):
            return _indent(level) + str(self)
        return (
            f"{self.lhs.pretty(level + 1, max_width)}\n"
            f"{_indent(level)}{self._operator_str()}\n"
            f"{self.rhs.pretty(level + 1, max_width)}"
        )


@dataclass
class AggregateExpr(_Node):
    """An aggregation over the series of a vector."""

    op: str
    expr: _Node | None = None
    param: _Node | None = None
    grouping: list[str] = field(default_factory=list)
    without: bool = False
    pos_range: PositionRange = _NO_POSITION

    def _op_str(self) -> str:
        if self.without:
            return f"{self.op} without ({', '.join(self.grouping)}) "
        if self.grouping:
            return f"{self.op} by ({', '.join(self.grouping)}) "
        return self.op

    def __str__(self) -> str:
        param = f"{self.param}, " if self.op in AGGREGATORS_WITH_PARAM else ""
        return f"{self._op_str()}({param}{self.expr})"

    def position_range(self) -> PositionRange:
        return self.pos_range

    def children(self) -> list:
        return [node for node in (self.expr, self.param) if node is not None]

    def value_type(self) -> ValueType:
        return ValueType.VECTOR

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        prefix = _indent(level)
        if not _needs_split(self, max_width):
            return prefix + str(self)
        text = f"{prefix}{self._op_str()}(\n"
        if self.op in AGGREGATORS_WITH_PARAM:
            text += f"{self.param.pretty(level + 1, max_width)},\n"
        return text + f"{self.expr.pretty(level + 1, max_width)}\n{prefix})"


class Expressions(list):
    """A list of expressions, such as the arguments of a call."""

    def __repr__(self) -> str:
        return f"Expressions({list.__repr__(self)})"

    def __str__(self) -> str:
        return ", ".join(str(expr) for expr in self)

    def position_range(self) -> PositionRange:
        if not self:
            return PositionRange(-1, -1)
        return PositionRange(self[0].position_range().start, self[-1].position_range().end)

    def children(self) -> list:
        return list(self)

    def value_type(self) -> ValueType:
        return ValueType.NONE

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return ",\n".join(expr.pretty(level, max_width) for expr in self)


@dataclass
class Call(_Node):
    """A function call."""

    func: Function
    args: Expressions = field(default_factory=Expressions)
    pos_range: PositionRange = _NO_POSITION

    def __str__(self) -> str:
        return f"{self.func.name}({self.args})"

    def position_range(self) -> PositionRange:
        return self.pos_range

    def children(self) -> list:
        return [self.args]

    def value_type(self) -> ValueType:
        return self.func.return_type

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        prefix = _indent(level)
        if not _needs_split(self, max_width):
            return prefix + str(self)
        args = self.args.pretty(level + 1, max_width)
        return f"{prefix}{self.func.name}(\n{args}\n{prefix})"


@dataclass
class StepInvariantExpr(_Node):
    """An expression whose value is the same at every step."""

    expr: _Node

    def __str__(self) -> str:
        return str(self.expr)

    def position_range(self) -> PositionRange:
        return self.expr.position_range()

    def children(self) -> list:
        return [self.expr]

    def value_type(self) -> ValueType:
        return self.expr.value_type()

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return self.expr.pretty(level, max_width)


@dataclass
class EvalStmt(_Node):
    """A statement evaluating an expression over a time range."""

    expr: _Node
    start: datetime | None = None
    end: datetime | None = None
    interval: timedelta = timedelta(0)
    lookback_delta: timedelta = timedelta(0)

    def __str__(self) -> str:
        return f"EVAL {self.expr}"

    def position_range(self) -> PositionRange:
        return self.expr.position_range()

    def children(self) -> list:
        return [self.expr]

    def pretty(self, level: int, max_width: int = DEFAULT_MAX_WIDTH) -> str:
        return f"EVAL {self.expr}"


def prettify(node: _Node, max_width: int = DEFAULT_MAX_WIDTH) -> str:
    """Format a node over several lines so that lines stay within max_width."""
    return node.pretty(0, max_width)


def _tree(node: _Node | None, level: str) -> str:
    if node is None:
        return f"{level} |---- <nil>\n"
    text = f"{level} |---- {type(node).__name__} :: {node}\n"
    level += " · · ·"
    return text + "".join(_tree(child, level) for child in node.children())


def tree(node: _Node | None) -> str:
    """Describe the structure of a tree, one node per line."""
    return _tree(node, "")