"""
Helpers for testing iteration jobs.

Each helper returns an interruption adapter. Pass it to IterationDriver, or use
``stub_interruption`` to make every driver looking up an adapter by name get it::

    with stub_interruption(iterate_exact_times(3)):
        driver.perform(record)   # stops after 3 values and re-enqueues
"""

from contextlib import contextmanager
from typing import Iterator
from unittest import mock

from .interruption import InterruptionAdapter


class StoppingSupervisor:
    """Adapter requesting a stop after every ``stop_after_count`` checks."""

    def __init__(self, stop_after_count: int):
        if type(stop_after_count) is not int or stop_after_count < 1:
            raise ValueError(f"stop_after_count must be a positive integer, got {stop_after_count!r}")
        self.stop_after_count = stop_after_count
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.calls % self.stop_after_count == 0


class _FixedAdapter:

    def __init__(self, value: bool):
        self.value = value

    def __call__(self) -> bool:
        return self.value

    def __repr__(self) -> str:
        return f"_FixedAdapter({self.value!r})"


def iterate_exact_times(n_times: int) -> StoppingSupervisor:
    """Interrupt the job after every n_times processed values."""
    return StoppingSupervisor(n_times)


def iterate_once() -> StoppingSupervisor:
    """Interrupt the job after every single value."""
    return iterate_exact_times(1)


def continue_iterating() -> InterruptionAdapter:
    """Never interrupt; the job iterates until the end."""
    return _FixedAdapter(False)


def mark_worker_as_interrupted() -> InterruptionAdapter:
    """Report the worker as already stopping."""
    return _FixedAdapter(True)


@contextmanager
def stub_interruption(adapter: InterruptionAdapter) -> Iterator[InterruptionAdapter]:
    """Make drivers without an explicit adapter use ``adapter`` whatever the queue name."""
    with mock.patch('job_iteration.iteration.lookup', return_value=adapter):
        yield adapter
