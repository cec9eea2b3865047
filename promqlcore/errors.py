"""Parse errors carrying the position at which they occurred."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class PositionRange:
    """A half-open range of character offsets in a query."""

    start: int
    end: int


class ParseErr(Exception):
    """A parse error with the query and position it refers to."""

    def __init__(
        self,
        position_range: PositionRange,
        err: Exception | str,
        query: str,
        line_offset: int = 0,
    ) -> None:
        super().__init__(position_range, err, query)
        self.position_range = position_range
        self.err = err
        self.query = query
        self.line_offset = line_offset

    def __str__(self) -> str:
        pos = self.position_range.start
        if pos < 0 or pos > len(self.query):
            position = "invalid position:"
        else:
            line = self.line_offset + 1
            last_line_break = -1
            for index, char in enumerate(self.query[:pos]):
                if char == "\n":
                    last_line_break = index
                    line += 1
            position = f"{line}:{pos - last_line_break}:"
        return f"{position} parse error: {self.err}"


class ParseErrors(Exception):
    """All errors found while parsing; its message is that of the first."""

    def __init__(self, errors: Iterable[ParseErr] = ()) -> None:
        self.errors = list(errors)
        super().__init__(*self.errors)

    def __iter__(self) -> Iterator[ParseErr]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __getitem__(self, index: int) -> ParseErr:
        return self.errors[index]

    def __str__(self) -> str:
        if self.errors:
            return str(self.errors[0])
        return "error contains no error message"