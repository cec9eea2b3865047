"""Workers that apply a task to step vectors on background threads."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError
from typing import Any

Task = Callable[[int, float, Any], Any]

_POLL_INTERVAL = 0.01


class Worker:
    """Runs a task on its own thread, one input at a time."""

    def __init__(self, worker_id: int, task: Task) -> None:
        self.worker_id = worker_id
        self._task = task
        self._input: queue.Queue = queue.Queue(maxsize=1)
        self._output: queue.Queue = queue.Queue(maxsize=1)
        self._cancelled: threading.Event | None = None

    def _run(self, cancelled: threading.Event, started: threading.Event) -> None:
        self._cancelled = cancelled
        started.set()
        while not cancelled.is_set():
            try:
                arg, vector = self._input.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                outcome = (self._task(self.worker_id, arg, vector), None)
            except Exception as exc:  # delivered to the caller of get_output
                outcome = (None, exc)
            if not self._put(self._output, outcome, cancelled):
                return

    @staticmethod
    def _put(target: queue.Queue, item: Any, cancelled: threading.Event) -> bool:
        while not cancelled.is_set():
            try:
                target.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _started(self) -> threading.Event:
        if self._cancelled is None:
            raise RuntimeError(f"worker {self.worker_id} has not been started")
        return self._cancelled

    def send(self, arg: float, vector: Any) -> None:
        """Hand an argument and a step vector to the worker."""
        cancelled = self._started()
        if cancelled.is_set() or not self._put(self._input, (arg, vector), cancelled):
            raise CancelledError(f"worker {self.worker_id} was cancelled")

    def get_output(self) -> Any:
        """Wait for and return the result of the next task."""
        cancelled = self._started()
        while True:
            if cancelled.is_set():
                raise CancelledError(f"worker {self.worker_id} was cancelled")
            try:
                result, error = self._output.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if error is not None:
                raise error
            return result


class Group(list):
    """A list of workers that are started together."""

    def start(self, cancelled: threading.Event) -> None:
        """Start every worker and return once all of them are running."""
        started = []
        for worker in self:
            ready = threading.Event()
            thread = threading.Thread(
                target=worker._run,
                args=(cancelled, ready),
                name=f"worker-{worker.worker_id}",
                daemon=True,
            )
            thread.start()
            started.append(ready)
        for ready in started:
            ready.wait()


def new_group(num_workers: int, task: Task) -> Group:
    """Create a group of workers numbered from zero, all running the same task."""
    return Group(Worker(worker_id, task) for worker_id in range(num_workers))