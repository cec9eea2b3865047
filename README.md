# promqlcore

Building blocks for working with PromQL expressions in Python. You build a
syntax tree from node classes. The package prints it back as normalised query
text, lays it out over several lines, and type-checks it. It also parses the
number, string and duration literals of the language. Two small runtime helpers
are included: evaluation options and a group of worker threads.

## Modules

- `promqlcore.ast` holds the syntax tree:
  - Node classes: `NumberLiteral`, `StringLiteral`, `VectorSelector`,
    `MatrixSelector`, `SubqueryExpr`, `ParenExpr`, `UnaryExpr`, `BinaryExpr`,
    `AggregateExpr`, `Call`, `Expressions`, `StepInvariantExpr` and `EvalStmt`.
  - Helper types: `VectorMatching`, `VectorMatchCardinality`, `StartOrEnd` and
    `Function`, which gives the name, argument types, variadic count and return
    type of a function.
  - `str(node)` gives the normalised expression text. Label matchers are sorted,
    and `offset` and `@` modifiers are written out.
  - `prettify(node, max_width=100)` splits any node whose text is longer than
    `max_width` over indented lines.
  - `tree(node)` returns one line per node showing the tree's structure.
- `promqlcore.checker` checks types and applies modifiers:
  - `check_ast(node, query="")` returns the `ValueType` of the root. It raises
    `ParseErrors` listing every problem found. Examples of problems: comparisons
    between scalars without `bool`, set operators used with scalars, grouping on
    set operations, wrong argument counts or types in calls, aggregation
    parameters of the wrong type, and selectors without a non-empty matcher.
    It also changes the tree: set operations get many-to-many matching, and
    matching is dropped where an operand is not an instant vector.
  - `set_offset`, `set_timestamp` and `set_at_preprocessor` attach `offset`,
    `@ <timestamp>` and `@ start()` / `@ end()` modifiers to a selector or
    subquery. Each one also sets the node's end position. They raise
    `ParseErrors` when a modifier is misplaced, set twice, or out of bounds.
- `promqlcore.errors`:
  - `PositionRange` is a start and end offset in the query text.
  - `ParseErr` renders messages as `line:col: parse error: ...`.
  - `ParseErrors` holds several `ParseErr`s and shows the first one as its
    message.
- `promqlcore.literals`:
  - `parse_number` reads decimal, hex, octal and binary integers, floats, hex
    floats, `Inf` and `NaN`.
  - `unquote` interprets string literals in double quotes, single quotes or
    backticks, including escape sequences.
  - `timestamp_from_seconds` converts seconds to milliseconds, rounding halves
    away from zero.
  - `SequenceValue` is one value of a series description, which may be omitted
    (`_`).
- `promqlcore.durations`:
  - `parse_duration` reads durations such as `1h30m` or `5y`. The units are
    `y`, `w`, `d`, `h`, `m`, `s` and `ms`.
  - `parse_positive_duration` does the same and rejects zero.
  - `format_duration` writes a duration back in that notation.
- `promqlcore.labels` provides `Matcher`, `MatchType`, `must_label_matcher` and
  `METRIC_NAME`. `Matcher.matches(value)` tests a label value. Regular
  expressions must match the whole value.
- `promqlcore.value` provides `ValueType` and `documented_type`, which returns
  names such as "instant vector" and "range vector".
- `promqlcore.options` provides `Options`, with the fields `start`, `end`,
  `step`, `lookback_delta`, `ext_lookback_delta` and `steps_batch`:
  - `num_steps()` returns the number of steps in one batch: the smaller of
    `steps_batch` and the number of steps in the range, or 1 when `step` is zero.
  - `with_end_time(end)` returns a copy with a different end.
- `promqlcore.worker`:
  - `new_group(n, task)` creates a `Group` of `n` `Worker`s.
  - `Group.start(cancelled)` starts one thread per worker. `cancelled` is a
    `threading.Event`.
  - `Worker.send(arg, vector)` hands an input to a worker.
  - `Worker.get_output()` returns the result of
    `task(worker_id, arg, vector)`. If the task raised an exception,
    `get_output()` raises it.
  - `send` and `get_output` raise `concurrent.futures.CancelledError` once
    `cancelled` is set.

## What it does not do

- It has no lexer or parser for query text. Trees are built from the node
  classes.
- It has no built-in table of functions. You describe each function you call
  with a `Function` value.
- It does not evaluate queries, store series or serve requests. There is no
  command-line program.

## Installation

```
pip install .
```

## Example

```python
from datetime import timedelta

from promqlcore.ast import (
    AggregateExpr, Call, Expressions, Function, MatrixSelector, VectorSelector, prettify,
)
from promqlcore.checker import check_ast
from promqlcore.labels import METRIC_NAME, MatchType, must_label_matcher
from promqlcore.value import ValueType

selector = VectorSelector(
    name="http_requests_total",
    label_matchers=[
        must_label_matcher(MatchType.EQUAL, "job", "api"),
        must_label_matcher(MatchType.EQUAL, METRIC_NAME, "http_requests_total"),
    ],
)
rate = Function("rate", arg_types=(ValueType.MATRIX,))
expr = AggregateExpr(
    "sum",
    expr=Call(rate, Expressions([MatrixSelector(selector, timedelta(minutes=5))])),
    grouping=["job"],
)

print(expr)              # sum by (job) (rate(http_requests_total{job="api"}[5m]))
print(check_ast(expr))   # vector
print(prettify(expr, 30))
# sum by (job) (
#   rate(
#     http_requests_total{job="api"}[5m]
#   )
# )
```

Type errors carry positions in the query text:

```python
from promqlcore.ast import BinaryExpr, NumberLiteral
from promqlcore.checker import check_ast
from promqlcore.errors import ParseErrors, PositionRange

query = "1 == 1"
expr = BinaryExpr(
    "==",
    NumberLiteral(1, PositionRange(0, 1)),
    NumberLiteral(1, PositionRange(5, 6)),
)
try:
    check_ast(expr, query)
except ParseErrors as errors:
    print(errors)  # 1:3: parse error: comparisons between scalars must use BOOL modifier
```

Running a task on a worker:

```python
import threading

from promqlcore.worker import new_group

group = new_group(2, lambda worker_id, arg, vector: [v * arg for v in vector])
cancelled = threading.Event()
group.start(cancelled)
group[0].send(2.0, [1.0, 2.0])
print(group[0].get_output())  # [2.0, 4.0]
cancelled.set()
```

## Running the tests

```
pip install ".[test]"
pytest
```