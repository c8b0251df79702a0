r"""
Parallel execution backends for path blocks.

This module provides:

Classes
    :class:`ThreadBackend` - Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` - Process-based parallelism using ProcessPoolExecutor

Both backends gather blocks by their row range, so the output order never
depends on completion order. A failing block cancels the blocks still pending
and surfaces as :class:`~garchnts.exceptions.WorkerFailure`; partial results
are dropped. Every call owns its executor, so a failure never leaks into the
next call.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Callable

import numpy as np

from ..exceptions import NumericalInstabilityError, ParameterValidationError, WorkerFailure
from .base import BlockTask, make_blocks, restrict_task, worker_run_block

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of chunks per worker for load balancing


def _gather(
    ex: Executor,
    futs: list[Future],
    n_rows: int,
    progress_callback: Callable[[int, int], None] | None,
) -> np.ndarray:
    """Collect block futures into a row-ordered array, cancelling the rest on failure."""
    results: np.ndarray | None = None
    completed = 0
    try:
        for f in as_completed(futs):
            i, j = f.blk  # type: ignore[attr-defined]
            try:
                arr = f.result()
            except (ParameterValidationError, NumericalInstabilityError, WorkerFailure):
                raise
            except Exception as exc:
                raise WorkerFailure(f"worker failed on paths [{i}, {j}): {exc!r}", block=(i, j)) from exc
            if results is None:
                results = np.empty((n_rows,) + arr.shape[1:], dtype=arr.dtype)
            results[i:j] = arr
            completed += j - i
            if progress_callback:
                progress_callback(completed, n_rows)  # pragma: no cover
    except BaseException:
        for f in futs:
            f.cancel()
        logger.debug("Cancelled pending blocks after failure in %s", type(ex).__name__)
        raise
    return results


class _PoolBackend:
    def __init__(
        self,
        n_workers: int,
        chunks_per_worker: int = _CHUNKS_PER_WORKER,
        block_size: int | None = None,
    ):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker
        self.block_size = block_size

    def _prepare_blocks(self, n_rows: int) -> list[tuple[int, int]]:
        """Partition rows, using a fixed block size when one is configured."""
        block_size = self.block_size or max(1, n_rows // (self.n_workers * self.chunks_per_worker))
        return make_blocks(n_rows, block_size)


class ThreadBackend(_PoolBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective for path
    blocks because the vectorized NumPy work releases the GIL.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.
    block_size : int, optional
        Fixed rows per block; overrides ``chunks_per_worker``.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> backend.run(10, lambda i, j: np.arange(i, j), None)
    array([0, 1, 2, 3, 4, 5, 6, 7, 8, 9])
    """

    def run(
        self,
        n_rows: int,
        task: BlockTask,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Evaluate blocks in parallel using threads.

        Parameters
        ----------
        n_rows : int
            Number of rows.
        task : callable
            Block task ``task(start, stop)``; shared read-only across threads.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Row-ordered results.

        Raises
        ------
        WorkerFailure
            If any block raises an unexpected exception.
        """
        blocks = self._prepare_blocks(n_rows)
        max_workers = min(self.n_workers, len(blocks))

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = []
            for i, j in blocks:
                f = ex.submit(worker_run_block, task, i, j)
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            return _gather(ex, futs, n_rows, progress_callback)


class ProcessBackend(_PoolBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context.
    Required on Windows or for tasks that hold the GIL.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.
    block_size : int, optional
        Fixed rows per block; overrides ``chunks_per_worker``.

    Notes
    -----
    The task must be pickleable. When it implements ``restrict(start, stop)``
    each worker receives only the data of its own block.
    """

    def run(
        self,
        n_rows: int,
        task: BlockTask,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Evaluate blocks in parallel using processes.

        Parameters
        ----------
        n_rows : int
            Number of rows.
        task : callable
            Pickleable block task ``task(start, stop)``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Row-ordered results.

        Raises
        ------
        WorkerFailure
            If any block raises an unexpected exception.
        """
        blocks = self._prepare_blocks(n_rows)
        max_workers = min(self.n_workers, len(blocks))

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = []
            for i, j in blocks:
                f = ex.submit(worker_run_block, restrict_task(task, i, j), i, j)
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            return _gather(ex, futs, n_rows, progress_callback)
