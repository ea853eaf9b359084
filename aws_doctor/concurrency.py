"""Cancellation handle and the parallel task dispatcher used by workflows.

Every fetcher of a workflow runs on a worker thread of a single
:class:`~concurrent.futures.ThreadPoolExecutor`. All tasks share one
:class:`CancelToken`; the first task to fail cancels it, queued tasks never
start and running tasks stop at their next pagination boundary. The dispatcher
joins every task before it returns or raises.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, Mapping, Optional, Tuple, TypeVar

from .errors import WorkflowCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

Task = Callable[["CancelToken"], T]

DEFAULT_MAX_WORKERS = 10


class CancelToken:
    """Cooperative cancellation signal with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self) -> None:
        """Raise :class:`WorkflowCancelled` when the token has been triggered."""

        if self.cancelled:
            raise WorkflowCancelled("Operation cancelled before completion")


def run_concurrently(
    tasks: Mapping[str, Task],
    cancel: CancelToken,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Dict[str, object]:
    """Run ``tasks`` in parallel and return their results keyed by task name.

    The first exception raised by any task is re-raised after every other
    task has been cancelled and joined; no partial results are returned.
    An interrupt of the calling thread cancels the running tasks before they
    are joined.
    """

    cancel.raise_if_cancelled()
    if not tasks:
        return {}

    logger.debug("Dispatching %d tasks with max_workers=%d", len(tasks), max_workers)
    start = time.monotonic()
    first_error = _FirstError()
    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks))))
    futures: Dict[Future, str] = {}
    try:
        for name, task in tasks.items():
            futures[executor.submit(_run_task, name, task, cancel, first_error)] = name
        wait(futures, return_when=FIRST_EXCEPTION)
    except BaseException:
        cancel.cancel()
        raise
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    failure = first_error.get()
    if failure is not None:
        name, exc = failure
        cancel.cancel()
        logger.info("Task '%s' failed: %s", name, exc)
        raise exc

    logger.debug("All %d tasks finished in %.0fms", len(tasks), (time.monotonic() - start) * 1000)
    return {name: future.result() for future, name in futures.items()}


class _FirstError:
    """Keeps the earliest task failure, ranking cancellations below real errors."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failure: Optional[Tuple[str, BaseException]] = None

    def record(self, name: str, exc: BaseException) -> None:
        with self._lock:
            if self._failure is None or (
                isinstance(self._failure[1], WorkflowCancelled)
                and not isinstance(exc, WorkflowCancelled)
            ):
                self._failure = (name, exc)

    def get(self) -> Optional[Tuple[str, BaseException]]:
        with self._lock:
            return self._failure


def _run_task(name: str, task: Task, cancel: CancelToken, first_error: _FirstError) -> object:
    try:
        cancel.raise_if_cancelled()
        logger.debug("Task '%s' started", name)
        result = task(cancel)
    except BaseException as exc:
        first_error.record(name, exc)
        # Signal siblings from the worker itself so queued tasks never start.
        cancel.cancel()
        raise
    logger.debug("Task '%s' finished", name)
    return result


__all__ = ["CancelToken", "DEFAULT_MAX_WORKERS", "Task", "run_concurrently"]
