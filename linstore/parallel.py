# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from .config import Control

logger = logging.getLogger(__name__)


def partition(start: int, stop: int, grain: int, workers: int) -> List[Tuple[int, int]]:
    """
    Split [start, stop) into contiguous chunks of at least `grain` items,
    at most one chunk per worker.
    """
    size = stop - start
    if size <= 0:
        return []
    chunks = max(1, min(workers, size // max(grain, 1)))
    step, extra = divmod(size, chunks)
    bounds = []
    lo = start
    for k in range(chunks):
        hi = lo + step + (1 if k < extra else 0)
        bounds.append((lo, hi))
        lo = hi
    return bounds


def parallel_for(
    start: int,
    stop: int,
    body: Callable[[int, int], None],
    grain: Optional[int] = None,
) -> None:
    """
    Run ``body(lo, hi)`` over disjoint chunks of [start, stop).

    Chunks run on a thread pool when the range is larger than the grain
    and more than one worker is configured; otherwise `body` is called
    once, inline. All chunks are joined before returning and the first
    exception raised by a chunk propagates to the caller.

    Parameters
    ----------
    start, stop : int
        Half-open index range.
    body : callable
        ``body(lo, hi)``; must only write to positions in [lo, hi).
    grain : int | None
        Minimum chunk size. Defaults to
        ``Control.parallel.parallelize_elements``.
    """
    settings = Control.parallel
    grain = settings.parallelize_elements if grain is None else grain
    workers = settings.max_degree_of_parallelism

    if stop - start <= grain or workers <= 1:
        if stop > start:
            body(start, stop)
        return

    chunks = partition(start, stop, grain, workers)
    if len(chunks) == 1:
        body(start, stop)
        return

    logger.debug("parallel_for [%d, %d) in %d chunks", start, stop, len(chunks))
    with ThreadPoolExecutor(max_workers=min(workers, len(chunks))) as pool:
        futures = [pool.submit(body, lo, hi) for lo, hi in chunks]
        for future in futures:
            future.result()
