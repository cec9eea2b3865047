"""Type checking of expression trees and the offset and @ modifiers."""

from __future__ import annotations

import math
from datetime import timedelta

from promqlcore.ast import (
    AGGREGATORS,
    BINARY_OPERATORS,
    COMPARISON_OPERATORS,
    SET_OPERATORS,
    AggregateExpr,
    BinaryExpr,
    Call,
    EvalStmt,
    Expressions,
    MatrixSelector,
    NumberLiteral,
    ParenExpr,
    StartOrEnd,
    StringLiteral,
    SubqueryExpr,
    UnaryExpr,
    VectorMatchCardinality,
    VectorSelector,
    _Node,
)
from promqlcore.errors import ParseErr, ParseErrors, PositionRange
from promqlcore.labels import METRIC_NAME, _go_quote
from promqlcore.literals import timestamp_from_seconds
from promqlcore.value import ValueType, documented_type

_SPACES = frozenset(" \t\n\r")
_INT64_BOUND = float(2**63)

_AT_TARGET_ERROR = (
    "@ modifier must be preceded by an instant vector selector or "
    "range vector selector or a subquery"
)
_OFFSET_TARGET_ERROR = (
    "offset modifier must be preceded by an instant vector selector or "
    "range vector selector or a subquery"
)
_RANGE_TARGET_ERROR = "ranges only allowed for vector selectors"


def _format_fixed(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:f}"


class _ErrorList:
    """Collects parse errors against one query."""

    def __init__(self, query: str) -> None:
        self.query = query
        self.errors: list[ParseErr] = []

    def add(self, position_range: PositionRange, message: str) -> None:
        self.errors.append(ParseErr(position_range, message, self.query))

    def raise_if_any(self) -> None:
        if self.errors:
            raise ParseErrors(self.errors)


class _Checker:
    """Walks a tree, checking types and recording every problem found."""

    def __init__(self, errors: _ErrorList) -> None:
        self.errors = errors
        self.query = errors.query

    def expect_type(self, node, want: ValueType, context: str) -> None:
        got = self.check(node)
        if got is not want:
            self.errors.add(
                node.position_range(),
                f"expected type {documented_type(want)} in {context}, "
                f"got {documented_type(got)}",
            )

    def check(self, node) -> ValueType:
        if node is None:
            raise TypeError("cannot check a missing node")
        if isinstance(node, Expressions):
            typ = ValueType.NONE
        elif isinstance(node, _Node) and not isinstance(node, EvalStmt):
            typ = node.value_type()
        else:
            typ = ValueType.NONE
            self.errors.add(node.position_range(), f"unknown node type: {type(node).__name__}")

        if isinstance(node, EvalStmt):
            inner = self.check(node.expr)
            if inner is ValueType.NONE:
                self.errors.add(
                    node.expr.position_range(),
                    "evaluation statement must have a valid expression type "
                    f"but got {documented_type(inner)}",
                )
        elif isinstance(node, Expressions):
            for expr in node:
                inner = self.check(expr)
                if inner is ValueType.NONE:
                    self.errors.add(
                        expr.position_range(),
                        "expression must have a valid expression type "
                        f"but got {documented_type(inner)}",
                    )
        elif isinstance(node, AggregateExpr):
            self._check_aggregate(node)
        elif isinstance(node, BinaryExpr):
            self._check_binary(node)
        elif isinstance(node, Call):
            self._check_call(node)
        elif isinstance(node, ParenExpr):
            self.check(node.expr)
        elif isinstance(node, UnaryExpr):
            if node.op not in ("+", "-"):
                self.errors.add(
                    node.position_range(),
                    "only + and - operators allowed for unary expressions",
                )
            inner = self.check(node.expr)
            if inner not in (ValueType.SCALAR, ValueType.VECTOR):
                self.errors.add(
                    node.position_range(),
                    "unary expression only allowed on expressions of type scalar "
                    f"or instant vector, got {_go_quote(documented_type(inner))}",
                )
        elif isinstance(node, SubqueryExpr):
            inner = self.check(node.expr)
            if inner is not ValueType.VECTOR:
                self.errors.add(
                    node.position_range(),
                    f"subquery is only allowed on instant vector, got {inner} instead",
                )
        elif isinstance(node, MatrixSelector):
            self.check(node.vector_selector)
        elif isinstance(node, VectorSelector):
            self._check_selector(node)
        elif isinstance(node, (NumberLiteral, StringLiteral)):
            pass
        else:
            self.errors.add(node.position_range(), f"unknown node type: {type(node).__name__}")
        return typ

    def _check_aggregate(self, node: AggregateExpr) -> None:
        if node.op not in AGGREGATORS:
            self.errors.add(
                node.position_range(),
                "aggregation operator expected in aggregation expression "
                f"but got {_go_quote(node.op)}",
            )
        self.expect_type(node.expr, ValueType.VECTOR, "aggregation expression")
        if node.op in ("topk", "bottomk", "quantile"):
            self.expect_type(node.param, ValueType.SCALAR, "aggregation parameter")
        if node.op == "count_values":
            self.expect_type(node.param, ValueType.STRING, "aggregation parameter")

    def _operator_range(self, node: BinaryExpr) -> PositionRange:
        query = self.query
        start = node.lhs.position_range().end
        while 0 <= start < len(query) and query[start] in _SPACES:
            start += 1
        end = node.rhs.position_range().start - 1
        while 0 <= end < len(query) and query[end] in _SPACES:
            end -= 1
        return PositionRange(start, end)

    def _check_binary(self, node: BinaryExpr) -> None:
        lhs_type = self.check(node.lhs)
        rhs_type = self.check(node.rhs)
        matching = node.vector_matching
        is_set_op = node.op in SET_OPERATORS
        is_comparison = node.op in COMPARISON_OPERATORS

        if node.return_bool and not is_comparison:
            self.errors.add(
                self._operator_range(node),
                "bool modifier can only be used on comparison operators",
            )
        if (
            is_comparison
            and not node.return_bool
            and node.rhs.value_type() is ValueType.SCALAR
            and node.lhs.value_type() is ValueType.SCALAR
        ):
            self.errors.add(
                self._operator_range(node),
                "comparisons between scalars must use BOOL modifier",
            )
        if matching is not None:
            if is_set_op and matching.card is VectorMatchCardinality.ONE_TO_ONE:
                matching.card = VectorMatchCardinality.MANY_TO_MANY
            if matching.on:
                for label in matching.matching_labels:
                    for included in matching.include:
                        if label == included:
                            self.errors.add(
                                self._operator_range(node),
                                f"label {_go_quote(label)} must not occur in ON "
                                "and GROUP clause at once",
                            )

        if node.op not in BINARY_OPERATORS:
            self.errors.add(
                node.position_range(),
                f"binary expression does not support operator {_go_quote(node.op)}",
            )
        operand_types = (ValueType.SCALAR, ValueType.VECTOR)
        if lhs_type not in operand_types:
            self.errors.add(
                node.lhs.position_range(),
                "binary expression must contain only scalar and instant vector types",
            )
        if rhs_type not in operand_types:
            self.errors.add(
                node.rhs.position_range(),
                "binary expression must contain only scalar and instant vector types",
            )

        both_vectors = lhs_type is ValueType.VECTOR and rhs_type is ValueType.VECTOR
        if not both_vectors and matching is not None:
            if matching.matching_labels:
                self.errors.add(
                    node.position_range(),
                    "vector matching only allowed between instant vectors",
                )
            node.vector_matching = None
        elif both_vectors and is_set_op and matching is not None:
            if matching.card in (
                VectorMatchCardinality.ONE_TO_MANY,
                VectorMatchCardinality.MANY_TO_ONE,
            ):
                self.errors.add(
                    node.position_range(),
                    f"no grouping allowed for {_go_quote(node.op)} operation",
                )
            if matching.card is not VectorMatchCardinality.MANY_TO_MANY:
                self.errors.add(
                    node.position_range(),
                    "set operations must always be many-to-many",
                )

        if ValueType.SCALAR in (lhs_type, rhs_type) and is_set_op:
            self.errors.add(
                node.position_range(),
                f"set operator {_go_quote(node.op)} not allowed in binary scalar expression",
            )

    def _check_call(self, node: Call) -> None:
        func = node.func
        name = _go_quote(func.name)
        declared = len(func.arg_types)
        given = len(node.args)
        if func.variadic == 0:
            if declared != given:
                self.errors.add(
                    node.position_range(),
                    f"expected {declared} argument(s) in call to {name}, got {given}",
                )
        else:
            required = declared - 1
            if required > given:
                self.errors.add(
                    node.position_range(),
                    f"expected at least {required} argument(s) in call to {name}, got {given}",
                )
            elif func.variadic > 0 and required + func.variadic < given:
                self.errors.add(
                    node.position_range(),
                    f"expected at most {required + func.variadic} argument(s) "
                    f"in call to {name}, got {given}",
                )

        for position, arg in enumerate(node.args):
            if position >= declared:
                if func.variadic == 0:
                    break
                position = declared - 1
            self.expect_type(arg, func.arg_types[position], f"call to function {name}")

    def _check_selector(self, node: VectorSelector) -> None:
        if node.name:
            # The last matcher checks the metric name given outside the braces.
            for matcher in node.label_matchers[:-1]:
                if matcher is not None and matcher.name == METRIC_NAME:
                    self.errors.add(
                        node.position_range(),
                        f"metric name must not be set twice: {_go_quote(node.name)} "
                        f"or {_go_quote(matcher.value)}",
                    )
            return
        if not any(
            matcher is not None and not matcher.matches("")
            for matcher in node.label_matchers
        ):
            self.errors.add(
                node.position_range(),
                "vector selector must contain at least one non-empty matcher",
            )


def check_ast(node, query: str = "") -> ValueType:
    """Check the types of a tree and return the type of its root.

    Raises ParseErrors listing every problem found. Set operations get
    many-to-many matching, and matching is dropped where an operand is not
    an instant vector.
    """
    errors = _ErrorList(query)
    typ = _Checker(errors).check(node)
    errors.raise_if_any()
    return typ


def set_offset(node, offset: timedelta, end_pos: int, query: str = "") -> None:
    """Apply an offset modifier ending at end_pos; raises ParseErrors when misplaced."""
    errors = _ErrorList(query)
    if isinstance(node, VectorSelector):
        target = node
    elif isinstance(node, MatrixSelector):
        if not isinstance(node.vector_selector, VectorSelector):
            errors.add(node.position_range(), _RANGE_TARGET_ERROR)
            errors.raise_if_any()
        target = node.vector_selector
    elif isinstance(node, SubqueryExpr):
        target = node
    else:
        errors.add(node.position_range(), _OFFSET_TARGET_ERROR)
        errors.raise_if_any()

    if target.original_offset != timedelta(0):
        errors.add(node.position_range(), "offset may not be set multiple times")
    else:
        target.original_offset = offset
    _set_end(node, end_pos)
    errors.raise_if_any()


def _set_end(node, end_pos: int) -> None:
    if isinstance(node, VectorSelector):
        node.pos_range = PositionRange(node.pos_range.start, end_pos)
    else:
        node.end_pos = end_pos


def _at_target(node, errors: _ErrorList):
    """Return the node carrying the @ modifier, or None after recording an error."""
    if isinstance(node, VectorSelector):
        target = node
    elif isinstance(node, MatrixSelector):
        if not isinstance(node.vector_selector, VectorSelector):
            errors.add(node.position_range(), _RANGE_TARGET_ERROR)
            return None
        target = node.vector_selector
    elif isinstance(node, SubqueryExpr):
        target = node
    else:
        errors.add(node.position_range(), _AT_TARGET_ERROR)
        return None

    if target.timestamp is not None or target.start_or_end in (
        StartOrEnd.START,
        StartOrEnd.END,
    ):
        errors.add(node.position_range(), "@ <timestamp> may not be set multiple times")
        return None
    return target


def set_timestamp(node, seconds: float, end_pos: int, query: str = "") -> None:
    """Apply an ``@ <timestamp>`` modifier; raises ParseErrors when invalid."""
    errors = _ErrorList(query)
    out_of_bounds = (
        math.isnan(seconds)
        or math.isinf(seconds)
        or seconds >= _INT64_BOUND
        or seconds <= -_INT64_BOUND
    )
    if out_of_bounds:
        errors.add(
            node.position_range(),
            f"timestamp out of bounds for @ modifier: {_format_fixed(seconds)}",
        )
    target = _at_target(node, errors)
    if target is not None:
        if not out_of_bounds:
            target.timestamp = timestamp_from_seconds(seconds)
        _set_end(node, end_pos)
    errors.raise_if_any()


def set_at_preprocessor(
    node, start_or_end: StartOrEnd, end_pos: int, query: str = ""
) -> None:
    """Apply an ``@ start()`` or ``@ end()`` modifier; raises ParseErrors when invalid."""
    errors = _ErrorList(query)
    target = _at_target(node, errors)
    if target is not None:
        target.start_or_end = StartOrEnd(start_or_end)
        _set_end(node, end_pos)
    errors.raise_if_any()