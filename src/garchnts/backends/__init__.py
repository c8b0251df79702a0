"""
Execution backends for the per-row path fan-out.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend` - Single-threaded execution
    :class:`ThreadBackend` - Thread-based parallelism
    :class:`ProcessBackend` - Process-based parallelism

Driver
    :class:`ParallelPathDriver` - Backend selection and row-ordered gathering

Utilities
    :func:`make_blocks` - Chunking helper for parallel work distribution
    :func:`worker_run_block` - Top-level worker for process pools
    :func:`restrict_task` - Slice a task to its block before shipping it
    :func:`is_windows_platform` - Platform detection helper
    :func:`default_workers` - Default pool size (CPU count minus one)

Protocol
    :class:`ExecutionBackend` - Interface for custom backends
"""

from .base import BlockTask, ExecutionBackend, is_windows_platform, make_blocks, restrict_task, worker_run_block
from .driver import ParallelPathDriver, default_workers
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

__all__ = [
    # Protocol
    "ExecutionBackend",
    "BlockTask",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Driver
    "ParallelPathDriver",
    "default_workers",
    # Utility Functions
    "make_blocks",
    "worker_run_block",
    "restrict_task",
    "is_windows_platform",
]
