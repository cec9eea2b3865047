import threading
from concurrent.futures import CancelledError

import pytest

from promqlcore.worker import Group, Worker, new_group


def _echo(worker_id, arg, vector):
    return (worker_id, arg, vector)


@pytest.fixture
def cancelled():
    event = threading.Event()
    yield event
    event.set()


def test_new_group_numbers_workers_in_order():
    group = new_group(4, _echo)
    assert isinstance(group, Group)
    assert [worker.worker_id for worker in group] == list(range(4))


def test_worker_returns_task_result(cancelled):
    group = new_group(1, _echo)
    group.start(cancelled)
    worker = group[0]
    worker.send(2.5, ["sample"])
    assert worker.get_output() == (0, 2.5, ["sample"])


def test_each_worker_passes_its_own_id(cancelled):
    group = new_group(3, _echo)
    group.start(cancelled)
    for worker in group:
        worker.send(1.0, "vec")
    outputs = [worker.get_output() for worker in group]
    assert [out[0] for out in outputs] == [worker.worker_id for worker in group]


def test_results_come_back_in_send_order(cancelled):
    group = new_group(1, lambda wid, arg, vec: arg * 2)
    group.start(cancelled)
    worker = group[0]
    results = []
    for arg in [1.0, 2.0, 3.0]:
        worker.send(arg, None)
        results.append(worker.get_output())
    assert results == [2.0, 4.0, 6.0]


def test_send_after_cancellation_raises(cancelled):
    group = new_group(1, _echo)
    group.start(cancelled)
    cancelled.set()
    with pytest.raises(CancelledError):
        group[0].send(1.0, None)


def test_get_output_after_cancellation_raises(cancelled):
    group = new_group(1, _echo)
    group.start(cancelled)
    cancelled.set()
    with pytest.raises(CancelledError):
        group[0].get_output()


def test_worker_must_be_started_before_use():
    worker = Worker(7, _echo)
    with pytest.raises(RuntimeError):
        worker.send(1.0, None)
    with pytest.raises(RuntimeError):
        worker.get_output()


def test_task_error_is_raised_from_get_output(cancelled):
    def failing(worker_id, arg, vector):
        raise ZeroDivisionError("boom")

    group = new_group(1, failing)
    group.start(cancelled)
    group[0].send(1.0, None)
    with pytest.raises(ZeroDivisionError):
        group[0].get_output()


def test_workers_run_concurrently(cancelled):
    barrier = threading.Barrier(2, timeout=5)

    def wait_for_peer(worker_id, arg, vector):
        barrier.wait()
        return worker_id

    group = new_group(2, wait_for_peer)
    group.start(cancelled)
    for worker in group:
        worker.send(0.0, None)
    assert sorted(worker.get_output() for worker in group) == [0, 1]