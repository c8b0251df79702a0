r"""
Sequential execution backend for path blocks.

This module provides a single-threaded execution strategy that evaluates
blocks in order with optional progress reporting.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .base import BlockTask, make_blocks, worker_run_block

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Evaluates blocks one at a time on the calling thread.
    Suitable for small path counts or debugging.

    Parameters
    ----------
    block_size : int, optional
        Rows per block. ``None`` evaluates all rows in one block.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> backend.run(3, lambda i, j: np.arange(i, j), None)
    array([0, 1, 2])
    """

    def __init__(self, block_size: int | None = None):
        self.block_size = block_size

    def run(
        self,
        n_rows: int,
        task: BlockTask,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Evaluate all blocks sequentially on a single thread.

        Parameters
        ----------
        n_rows : int
            Number of rows.
        task : callable
            Block task ``task(start, stop)``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Rows ``0`` to ``n_rows`` stacked along the first axis.
        """
        parts = []
        for i, j in make_blocks(n_rows, self.block_size or max(1, n_rows)):
            parts.append(worker_run_block(task, i, j))
            if progress_callback:
                progress_callback(j, n_rows)
        return np.concatenate(parts, axis=0)
