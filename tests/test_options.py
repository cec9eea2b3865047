from datetime import datetime, timedelta, timezone

from promqlcore.options import Options

START = datetime(1970, 1, 1, tzinfo=timezone.utc)
STEP = timedelta(seconds=30)


def test_instant_query_has_one_step():
    opts = Options(start=START, end=START + timedelta(hours=2), step=timedelta(0), steps_batch=10)
    assert opts.num_steps() == 1


def test_sub_millisecond_step_counts_as_instant():
    opts = Options(
        start=START,
        end=START + timedelta(hours=2),
        step=timedelta(microseconds=500),
        steps_batch=10,
    )
    assert opts.num_steps() == 1


def test_steps_are_capped_by_batch_size():
    opts = Options(start=START, end=START + timedelta(hours=2), step=STEP, steps_batch=10)
    assert opts.num_steps() == opts.steps_batch


def test_short_range_returns_total_steps():
    opts = Options(start=START, end=START + STEP * 4, step=STEP, steps_batch=100)
    assert opts.num_steps() == 5


def test_equal_start_and_end_give_single_step():
    opts = Options(start=START, end=START, step=STEP, steps_batch=100)
    assert opts.num_steps() == 1


def test_partial_final_step_is_not_counted():
    exact = Options(start=START, end=START + STEP * 4, step=STEP, steps_batch=100)
    partial = exact.with_end_time(START + STEP * 4 + timedelta(seconds=29))
    assert partial.num_steps() == exact.num_steps()


def test_naive_datetimes_are_treated_as_utc():
    naive = Options(
        start=datetime(2020, 1, 1),
        end=datetime(2020, 1, 1) + STEP * 3,
        step=STEP,
        steps_batch=100,
    )
    aware = Options(
        start=datetime(2020, 1, 1, tzinfo=timezone.utc),
        end=datetime(2020, 1, 1, tzinfo=timezone.utc) + STEP * 3,
        step=STEP,
        steps_batch=100,
    )
    assert naive.num_steps() == aware.num_steps()


def test_with_end_time_copies_and_leaves_original_unchanged():
    original = Options(
        start=START,
        end=START + timedelta(hours=2),
        step=STEP,
        lookback_delta=timedelta(minutes=5),
        steps_batch=10,
    )
    new_end = START + timedelta(hours=1)
    copy = original.with_end_time(new_end)
    assert copy.end == new_end
    assert original.end == START + timedelta(hours=2)
    assert copy.start == original.start
    assert copy.step == original.step
    assert copy.lookback_delta == original.lookback_delta
    assert copy.steps_batch == original.steps_batch