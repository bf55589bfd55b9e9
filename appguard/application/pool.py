"""Bounded worker pools for per-file work.

:func:`fan_out` runs one callable per item on a thread pool and gives each
call its own deadline. A call still running past its deadline is abandoned:
its outcome is reported as timed out and the scan moves on without waiting
for it. This suits I/O-bound work such as AI calls, whose transport carries
its own timeout.

:func:`fan_out_processes` is the variant for CPU-bound work that holds the
GIL, such as regex matching. Each call runs in a worker process, and a call
past its deadline is stopped by terminating the pool.

Results arrive in completion order; callers must not rely on item order.
"""
from __future__ import annotations

import importlib
import multiprocessing
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Generic, Iterator, Optional, Sequence, Tuple, TypeVar

from appguard.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

POLL_INTERVAL_S = 0.05


@dataclass
class TaskOutcome(Generic[T]):
    item: T
    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False
    duration_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


def fan_out(
    func: Callable[[T], Any],
    items: Sequence[T],
    max_workers: int,
    timeout_s: Optional[float],
    label: str = "task",
) -> Iterator[TaskOutcome[T]]:
    """Run ``func`` over ``items`` concurrently with a per-item deadline.

    Parameters
    ----------
    func : callable
        Work for one item. Exceptions are captured into the outcome.
    items : sequence
        Units of work (files, prompts...).
    max_workers : int
        Pool size.
    timeout_s : float or None
        Per-item deadline measured from when the item starts running.
    label : str
        Used in log messages.

    Yields
    ------
    TaskOutcome
        One per item, in completion order.
    """
    if not items:
        return

    started: Dict[int, float] = {}

    def _run(index: int, item: T) -> Any:
        started[index] = time.monotonic()
        return func(item)

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(items))),
        thread_name_prefix=f"appguard-{label}",
    )
    future_map: Dict[Future, int] = {}
    try:
        for index, item in enumerate(items):
            future_map[executor.submit(_run, index, item)] = index

        pending = set(future_map)
        while pending:
            done, pending = wait(pending, timeout=POLL_INTERVAL_S, return_when=FIRST_COMPLETED)
            for future in done:
                index = future_map[future]
                dt = time.monotonic() - started.get(index, time.monotonic())
                try:
                    value = future.result()
                except Exception as exc:
                    logger.debug("%s %d failed after %.2fs: %r", label, index, dt, exc)
                    yield TaskOutcome(item=items[index], error=exc, duration_s=dt)
                    continue
                yield TaskOutcome(item=items[index], value=value, duration_s=dt)

            if timeout_s is None:
                continue
            now = time.monotonic()
            for future in list(pending):
                index = future_map[future]
                t0 = started.get(index)
                if t0 is not None and now - t0 > timeout_s:
                    pending.discard(future)
                    future.cancel()
                    logger.warning("%s %d exceeded %.1fs and was abandoned", label, index, timeout_s)
                    yield TaskOutcome(item=items[index], timed_out=True, duration_s=now - t0)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def _preload(module: str) -> None:
    importlib.import_module(module)


def _start_process_pool(workers: int, module: Optional[str]) -> ProcessPoolExecutor:
    """Start ``workers`` processes and import ``module`` in each before any deadline runs."""
    executor = ProcessPoolExecutor(max_workers=workers, mp_context=multiprocessing.get_context("spawn"))
    if module:
        wait([executor.submit(_preload, module) for _ in range(workers)])
    return executor


def _terminate(executor: ProcessPoolExecutor) -> None:
    # ProcessPoolExecutor has no public way to stop a busy worker.
    processes = list((executor._processes or {}).values())
    for process in processes:
        process.terminate()
    for process in processes:
        process.join(timeout=1.0)
    executor.shutdown(wait=False, cancel_futures=True)


def fan_out_processes(
    func: Callable[[T], Any],
    items: Sequence[T],
    max_workers: int,
    timeout_s: Optional[float],
    label: str = "task",
) -> Iterator[TaskOutcome[T]]:
    """Run ``func`` over ``items`` in worker processes with a per-item deadline.

    ``func`` and the items must be picklable. At most ``max_workers`` items
    are in flight, so a deadline is measured from submission. When an item
    overruns, the whole pool is terminated and the other in-flight items are
    resubmitted to a fresh pool with a fresh deadline.

    Parameters and yielded outcomes are as for :func:`fan_out`.
    """
    if not items:
        return

    workers = max(1, min(max_workers, len(items)))
    module = getattr(func, "__module__", None)
    queue: Deque[int] = deque(range(len(items)))
    in_flight: Dict[Future, Tuple[int, float]] = {}
    executor: Optional[ProcessPoolExecutor] = None
    try:
        while queue or in_flight:
            if executor is None:
                executor = _start_process_pool(workers, module)
            while queue and len(in_flight) < workers:
                index = queue.popleft()
                in_flight[executor.submit(func, items[index])] = (index, time.monotonic())

            done, _ = wait(list(in_flight), timeout=POLL_INTERVAL_S, return_when=FIRST_COMPLETED)
            broken = False
            for future in done:
                index, t0 = in_flight.pop(future)
                dt = time.monotonic() - t0
                try:
                    value = future.result()
                except Exception as exc:
                    broken = broken or isinstance(exc, BrokenProcessPool)
                    logger.debug("%s %d failed after %.2fs: %r", label, index, dt, exc)
                    yield TaskOutcome(item=items[index], error=exc, duration_s=dt)
                    continue
                yield TaskOutcome(item=items[index], value=value, duration_s=dt)

            if broken:
                logger.warning("%s worker pool broke; starting a new one", label)
                _terminate(executor)
                executor = None
                continue
            if timeout_s is None:
                continue

            now = time.monotonic()
            expired = [future for future, (_, t0) in in_flight.items() if now - t0 > timeout_s]
            if not expired:
                continue
            for future in expired:
                index, t0 = in_flight.pop(future)
                logger.warning("%s %d exceeded %.1fs; its worker was terminated", label, index, timeout_s)
                yield TaskOutcome(item=items[index], timed_out=True, duration_s=now - t0)
            queue.extendleft(index for index, _ in in_flight.values())
            in_flight.clear()
            _terminate(executor)
            executor = None
    finally:
        if executor is not None:
            if in_flight:
                _terminate(executor)
            else:
                executor.shutdown(wait=True)


__all__ = ["TaskOutcome", "fan_out", "fan_out_processes"]
