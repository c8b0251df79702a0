r"""
Error taxonomy for GARCH-stdNTS pricing and batch studies.

Row-level errors (:class:`ParameterValidationError`,
:class:`NumericalInstabilityError`, :class:`WorkerFailure`) are recovered by
:class:`~garchnts.study.BatchStudyDriver` by skipping the affected row.
:class:`PersistenceError` is never recovered locally.
"""

from __future__ import annotations

__all__ = [
    "GarchNTSError",
    "ParameterValidationError",
    "NumericalInstabilityError",
    "WorkerFailure",
    "PersistenceError",
    "ROW_LEVEL_ERRORS",
]


class GarchNTSError(Exception):
    """Base class for all errors raised by :mod:`garchnts`."""


class ParameterValidationError(GarchNTSError, ValueError):
    """A supplied or sampled parameter set violates a distributional or stability constraint."""


class NumericalInstabilityError(GarchNTSError, ArithmeticError):
    """The characteristic-function drift correction is non-finite or not real within tolerance."""


class WorkerFailure(GarchNTSError, RuntimeError):
    r"""
    A parallel worker raised while simulating a block of paths.

    Parameters
    ----------
    message : str
        Human-readable description.
    block : tuple[int, int], optional
        Half-open path range ``(start, stop)`` the failing worker was assigned.
    """

    def __init__(self, message: str, block: tuple[int, int] | None = None):
        super().__init__(message)
        self.block = block


class PersistenceError(GarchNTSError, OSError):
    """A result chunk could not be written to durable storage."""


ROW_LEVEL_ERRORS = (ParameterValidationError, NumericalInstabilityError, WorkerFailure)
