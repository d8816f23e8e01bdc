#!/usr/bin/env python3
"""
Parallel-for over particle indices.

The index range [0, n) is split into contiguous, balanced slices (static
partitioning), one per worker. Each slice is handed to a thread of a
ThreadPoolExecutor and run() returns only after every slice has finished: this
is the barrier the clock relies on. Exceptions raised by a slice propagate from
run() after all slices have settled.

Work functions receive (start, stop) and must obey the kernel contract: read any
shared snapshot, write only the slots in [start, stop).
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional

logger = logging.getLogger("galaxy.parallel")


def partition(count: int, parts: int) -> List[range]:
    """Split range(count) into at most `parts` contiguous slices of near-equal size."""
    if count <= 0:
        return []
    parts = max(1, min(parts, count))
    base, extra = divmod(count, parts)
    slices = []
    start = 0
    for k in range(parts):
        stop = start + base + (1 if k < extra else 0)
        slices.append(range(start, stop))
        start = stop
    return slices


class ParallelFor:
    """Static-partition parallel-for backed by a thread pool."""

    def __init__(self, workers: Optional[int] = None):
        self.workers = workers if workers is not None else (os.cpu_count() or 1)
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="galaxy-kernel"
            )

    def run(self, count: int, work: Callable[[int, int], None]) -> None:
        slices = partition(count, self.workers)
        if self._executor is None or len(slices) <= 1:
            for s in slices:
                work(s.start, s.stop)
            return

        futures = [self._executor.submit(work, s.start, s.stop) for s in slices]
        wait(futures)
        for f in futures:
            f.result()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
