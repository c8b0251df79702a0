r"""
Backend selection for the per-row path fan-out.

:class:`ParallelPathDriver` resolves ``"auto"`` to a sequential, thread or
process backend and runs a block task over ``npath`` independent paths.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from typing import Callable

import numpy as np

from ..exceptions import NumericalInstabilityError, ParameterValidationError, WorkerFailure
from .base import BlockTask, is_windows_platform
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

logger = logging.getLogger(__name__)

__all__ = ["ParallelPathDriver", "default_workers"]


def default_workers() -> int:
    """Hardware concurrency minus one, at least one."""
    return max(1, mp.cpu_count() - 1)


class ParallelPathDriver:
    r"""
    Partition independent path computations across a worker pool.

    Parameters
    ----------
    backend : {"auto", "sequential", "thread", "process"}, default ``"auto"``
        Execution backend:

        - ``"auto"`` - Sequential below ``parallel_threshold`` paths or with a
          single worker; otherwise threads (processes on Windows)
        - ``"sequential"`` - Single-threaded execution
        - ``"thread"`` - Thread-based parallelism
        - ``"process"`` - Process-based parallelism (task must be pickleable)

    n_workers : int, optional
        Pool size. Defaults to :func:`default_workers`.
    block_size : int, optional
        Fixed rows per block. With a fixed block size the per-block arrays
        are identical whatever ``npath`` is.
    parallel_threshold : int, default 2_000
        Minimum path count for ``"auto"`` to go parallel.

    Examples
    --------
    >>> driver = ParallelPathDriver(backend="thread", n_workers=2)
    >>> driver.run(4, lambda i, j: np.arange(i, j) * 2.0)
    array([0., 2., 4., 6.])
    """

    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")

    def __init__(
        self,
        backend: str = "auto",
        n_workers: int | None = None,
        block_size: int | None = None,
        parallel_threshold: int = 2_000,
    ):
        if backend not in self._VALID_BACKENDS:
            raise ValueError(f"backend must be one of {self._VALID_BACKENDS}, got '{backend}'")
        if n_workers is not None and n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if block_size is not None and block_size <= 0:
            raise ValueError("block_size must be positive")
        self.backend = backend
        self.n_workers = n_workers
        self.block_size = block_size
        self.parallel_threshold = parallel_threshold

    def resolve_backend(self, npath: int) -> str:
        """Return the concrete backend name used for ``npath`` paths."""
        if self.backend != "auto":
            return self.backend
        n_workers = self.n_workers or default_workers()
        if n_workers <= 1 or npath < self.parallel_threshold:
            return "sequential"
        if is_windows_platform():
            logger.info("Parallel backend 'auto' resolved to 'process' on Windows platform.")
            return "process"
        return "thread"

    def _create_backend(self, backend: str) -> SequentialBackend | ThreadBackend | ProcessBackend:
        if backend == "sequential":
            return SequentialBackend(block_size=self.block_size)
        n_workers = self.n_workers or default_workers()
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers, block_size=self.block_size)
        return ProcessBackend(n_workers=n_workers, block_size=self.block_size)

    def run(
        self,
        npath: int,
        worker_fn: BlockTask,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> np.ndarray:
        r"""
        Evaluate ``worker_fn`` over ``[0, npath)`` and gather rows in path order.

        Parameters
        ----------
        npath : int
            Number of independent paths.
        worker_fn : callable
            Block task ``worker_fn(start, stop)`` returning ``stop - start`` rows.
        progress_callback : callable, optional
            A function ``f(completed: int, total: int)``.

        Returns
        -------
        ndarray
            Results with first axis of length ``npath``.

        Raises
        ------
        WorkerFailure
            If a worker raised; partial results are discarded.
        ParameterValidationError, NumericalInstabilityError
            Propagated unchanged from workers.
        """
        if npath <= 0:
            raise ValueError("npath must be positive")
        backend = self.resolve_backend(npath)
        if backend == "sequential":
            logger.debug("Simulating %d paths sequentially...", npath)
        else:
            logger.debug(
                "Simulating %d paths in parallel using %s backend with %d workers...",
                npath, backend, self.n_workers or default_workers(),
            )
        try:
            return self._create_backend(backend).run(npath, worker_fn, progress_callback)
        except (ParameterValidationError, NumericalInstabilityError, WorkerFailure):
            raise
        except Exception as exc:
            raise WorkerFailure(f"path simulation failed: {exc!r}") from exc
