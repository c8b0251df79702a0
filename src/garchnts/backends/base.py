r"""
Base classes and utilities for path-block execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` - Interface for block execution strategies
    :class:`BlockTask` - Callable evaluated on a half-open path range

Functions
    :func:`make_blocks` - Chunking helper for parallel work distribution
    :func:`worker_run_block` - Top-level worker for process-based parallelism
    :func:`restrict_task` - Trim a task to the data of one block before shipping it

Helpers
    :func:`is_windows_platform` - Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import Callable, Protocol

import numpy as np

__all__ = [
    "BlockTask",
    "ExecutionBackend",
    "make_blocks",
    "worker_run_block",
    "restrict_task",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


class BlockTask(Protocol):
    r"""
    A callable ``task(start, stop) -> ndarray`` returning ``stop - start`` rows.

    Tasks may optionally expose ``restrict(start, stop)`` returning an
    equivalent task that only carries the data of that row range; process
    backends use it so each worker receives its own slice.
    """

    def __call__(self, start: int, stop: int) -> np.ndarray: ...


def restrict_task(task: BlockTask, start: int, stop: int):
    """Return ``task.restrict(start, stop)`` when available, else ``task`` itself."""
    restrict = getattr(task, "restrict", None)
    return restrict(start, stop) if callable(restrict) else task


def worker_run_block(task: BlockTask, start: int, stop: int) -> np.ndarray:
    r"""
    Evaluate one block in a **separate worker**.

    Parameters
    ----------
    task :
        Block task. Must be pickleable when used with a process backend.
    start, stop : int
        Half-open row range.

    Returns
    -------
    ndarray
        Rows ``start`` to ``stop`` of the result, first axis of length ``stop - start``.

    Raises
    ------
    ValueError
        If the task returns the wrong number of rows.
    """
    out = np.asarray(task(start, stop))
    if out.ndim == 0 or out.shape[0] != stop - start:
        raise ValueError(f"block task returned {out.shape} for rows [{start}, {stop})")
    return out


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends evaluate a block task over ``[0, n_rows)`` and gather the blocks
    in row order, whatever order workers finish in.
    """

    def run(
        self,
        n_rows: int,
        task: BlockTask,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Evaluate ``task`` over all rows and return the gathered result.

        Parameters
        ----------
        n_rows : int
            Number of independent rows (paths).
        task : callable
            Block task ``task(start, stop)``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Array whose first axis has length ``n_rows``.
        """
