"""Options of a query evaluation."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def _duration_millis(duration: timedelta) -> int:
    micros = (duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds
    return _truncating_div(micros, 1000)


def _unix_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return micros // 1000


@dataclass(frozen=True)
class Options:
    """Time range, resolution and batching of a query evaluation."""

    start: datetime
    end: datetime
    step: timedelta = timedelta(0)
    lookback_delta: timedelta = timedelta(0)
    ext_lookback_delta: timedelta = timedelta(0)
    steps_batch: int = 0

    def num_steps(self) -> int:
        """Number of steps evaluated in one batch."""
        step_ms = _duration_millis(self.step)
        # Instant evaluation is executed as a range evaluation with one step.
        if step_ms == 0:
            return 1
        span = _unix_millis(self.end) - _unix_millis(self.start)
        total_steps = _truncating_div(span, step_ms) + 1
        return min(self.steps_batch, total_steps)

    def with_end_time(self, end: datetime) -> "Options":
        """Return a copy of these options with a different end time."""
        return dataclasses.replace(self, end=end)