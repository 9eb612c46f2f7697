"""Bounded worker pool with an explicit result channel."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger("title_grabber")

T = TypeVar("T")


class WorkerPool(Generic[T]):
    """Run work items on at most ``max_workers`` threads.

    Every submitted item puts exactly one value on the result channel, with
    ``None`` standing for "no result". ``join`` waits for every item and then
    drains exactly as many values as were submitted.
    """

    def __init__(
        self,
        max_workers: int,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.max_workers = max_workers
        self.log = log or logger
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="title-grabber",
        )
        self._slots = threading.BoundedSemaphore(max_workers)
        self._results: "queue.Queue[Optional[T]]" = queue.Queue()
        # Only the submitting thread touches this counter.
        self._submitted = 0
        self._joined = False

    @property
    def submitted(self) -> int:
        return self._submitted

    def _run(self, fn: Callable[..., Optional[T]], *args) -> None:
        result: Optional[T] = None
        try:
            result = fn(*args)
        except Exception:  # pylint: disable=broad-except
            self.log.exception("Unexpected error processing %s", args[0] if args else fn)
        finally:
            self._results.put(result)
            self._slots.release()

    def submit(self, fn: Callable[..., Optional[T]], *args) -> None:
        """Queue a work item, blocking while every worker is busy."""
        if self._joined:
            raise RuntimeError("Cannot submit to a joined pool")
        self._slots.acquire()
        try:
            self._executor.submit(self._run, fn, *args)
        except BaseException:
            self._slots.release()
            raise
        self._submitted += 1

    def join(self) -> Iterator[Optional[T]]:
        """Wait for all submitted work, then drain one result per item."""
        self._joined = True
        self._executor.shutdown(wait=True)
        for _ in range(self._submitted):
            yield self._results.get_nowait()

    def shutdown(self) -> None:
        self._joined = True
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "WorkerPool[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
