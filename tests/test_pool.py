"""Tests for the worker pools behind the per-file scanners."""

from __future__ import annotations

import time

from appguard.application.pool import fan_out, fan_out_processes


def square(n: int) -> int:
    if n < 0:
        raise ValueError("negative")
    return n * n


def spin(n: int) -> int:
    if n == 0:
        while True:
            pass
    return n


def test_process_outcomes_cover_every_item():
    outcomes = list(fan_out_processes(square, [1, 2, 3, -1], max_workers=2, timeout_s=5.0))

    values = sorted(o.value for o in outcomes if o.ok)
    errors = [o for o in outcomes if o.error is not None]
    assert values == [1, 4, 9]
    assert [o.item for o in errors] == [-1]
    assert isinstance(errors[0].error, ValueError)


def test_busy_worker_is_terminated_and_others_finish():
    started = time.monotonic()
    outcomes = list(fan_out_processes(spin, [0, 1, 2, 3], max_workers=2, timeout_s=0.5))

    assert time.monotonic() - started < 20.0
    assert [o.item for o in outcomes if o.timed_out] == [0]
    assert sorted(o.value for o in outcomes if o.ok) == [1, 2, 3]


def test_empty_input_starts_nothing():
    assert list(fan_out_processes(square, [], max_workers=4, timeout_s=1.0)) == []
    assert list(fan_out(square, [], max_workers=4, timeout_s=1.0)) == []


def test_thread_pool_outcomes():
    outcomes = list(fan_out(square, [2, 3], max_workers=2, timeout_s=1.0))
    assert sorted(o.value for o in outcomes) == [4, 9]
