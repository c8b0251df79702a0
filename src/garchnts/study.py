r"""
garchnts.study
==============

Batch sensitivity study over a low-discrepancy parameter design.

:class:`BatchStudyDriver` walks the design in order, prices each row and
buffers the result. Every ``chunk_size`` rows the :class:`ChunkBuffer` is
flushed to a :class:`CsvChunkSink` and replaced by an empty one; the last,
possibly partial, chunk is flushed on completion. States::

    SAMPLING -> PRICING(i) -> BUFFERING -> [FLUSHING -> BUFFERING] -> ... -> DONE

A crash loses at most the unflushed rows of the current chunk. Completed
chunk files are self-contained CSVs named after the 1-based, inclusive row
range they cover (``chunk_000011_000020.csv``); :func:`load_results`
concatenates them.

Row-level errors (:data:`~garchnts.exceptions.ROW_LEVEL_ERRORS`) skip the row
and are recorded; :class:`~garchnts.exceptions.PersistenceError` aborts.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

import pandas as pd

from .config import StudyConfig
from .core import GarchNTSPricer
from .exceptions import ROW_LEVEL_ERRORS, PersistenceError
from .parameters import ContractTerms, ModelParameters
from .sampler import ParameterSampler

logger = logging.getLogger(__name__)

__all__ = [
    "StudyState",
    "RowFailure",
    "ChunkBuffer",
    "CsvChunkSink",
    "StudyReport",
    "BatchStudyDriver",
    "make_pricing_fn",
    "row_to_inputs",
    "run_study",
    "load_results",
]

PRICE_COLUMNS = ("call_price", "put_price")
_CHUNK_RE = re.compile(r"^chunk_(\d+)_(\d+)\.csv$")

PricingFn = Callable[[Mapping[str, Any], int], tuple[float, float]]


class StudyState(str, Enum):
    """Lifecycle states of :class:`BatchStudyDriver`."""

    idle = "idle"
    sampling = "sampling"
    pricing = "pricing"
    buffering = "buffering"
    flushing = "flushing"
    done = "done"


@dataclass(frozen=True)
class RowFailure:
    """A design row skipped because of a row-level error."""

    row_id: int
    error_type: str
    message: str


@dataclass
class ChunkBuffer:
    r"""
    In-memory rows of one chunk.

    Attributes
    ----------
    start, end : int
        1-based inclusive row range the chunk covers.
    rows : list of dict
        Priced rows in design order.
    failures : list of RowFailure
        Rows of this range that were skipped.
    """

    start: int
    end: int
    rows: list[dict[str, Any]] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)

    def append(self, row: dict[str, Any]) -> None:
        self.rows.append(row)

    def record_failure(self, failure: RowFailure) -> None:
        self.failures.append(failure)

    @property
    def n_seen(self) -> int:
        return len(self.rows) + len(self.failures)

    @property
    def is_full(self) -> bool:
        return self.n_seen >= self.end - self.start + 1


class CsvChunkSink:
    r"""
    Append-only directory of CSV chunk files.

    Each chunk is written to a temporary file and renamed into place, so a
    chunk file is either complete or absent.

    Parameters
    ----------
    directory : str or Path
        Output directory; created on first write.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def chunk_path(self, start: int, end: int) -> Path:
        return self.directory / f"chunk_{start:06d}_{end:06d}.csv"

    def failures_path(self, start: int, end: int) -> Path:
        return self.directory / f"failures_{start:06d}_{end:06d}.csv"

    def completed_ranges(self) -> set[tuple[int, int]]:
        """Row ranges that already have a chunk file."""
        if not self.directory.is_dir():
            return set()
        out = set()
        for p in self.directory.iterdir():
            m = _CHUNK_RE.match(p.name)
            if m:
                out.add((int(m.group(1)), int(m.group(2))))
        return out

    def write(self, buffer: ChunkBuffer, columns: Sequence[str]) -> Path:
        r"""
        Persist ``buffer`` as one chunk file (plus a failures file when rows were skipped).

        Raises
        ------
        PersistenceError
            If the directory or any file cannot be written.
        """
        path = self.chunk_path(buffer.start, buffer.end)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if buffer.failures:
                self._atomic_csv(
                    pd.DataFrame([vars(f) for f in buffer.failures], columns=["row_id", "error_type", "message"]),
                    self.failures_path(buffer.start, buffer.end),
                )
            self._atomic_csv(pd.DataFrame(buffer.rows, columns=list(columns)), path)
        except OSError as exc:
            raise PersistenceError(f"could not write chunk {path}: {exc}") from exc
        return path

    @staticmethod
    def _atomic_csv(df: pd.DataFrame, path: Path) -> None:
        tmp = path.with_name(path.name + ".tmp")
        df.to_csv(tmp, index=False)
        os.replace(tmp, path)


def load_results(directory: str | Path) -> pd.DataFrame:
    r"""
    Concatenate every chunk file of ``directory`` in row order.

    Returns
    -------
    pandas.DataFrame
        All priced rows; empty if no chunk exists.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return pd.DataFrame()
    chunks = []
    for p in directory.iterdir():
        m = _CHUNK_RE.match(p.name)
        if m:
            chunks.append((int(m.group(1)), p))
    if not chunks:
        return pd.DataFrame()
    frames = [pd.read_csv(p) for _, p in sorted(chunks)]
    return pd.concat(frames, ignore_index=True)


@dataclass
class StudyReport:
    r"""
    Summary of a batch study.

    Attributes
    ----------
    n_requested : int
        Design rows requested.
    n_priced : int
        Rows priced and persisted by this run.
    failures : list of RowFailure
        Rows skipped because of row-level errors.
    chunk_paths : list of Path
        Chunk files written by this run, in order.
    skipped_ranges : list of tuple[int, int]
        Ranges skipped because their chunk already existed (``resume=True``).
    execution_time : float
        Wall-clock time in seconds.
    """

    n_requested: int
    n_priced: int = 0
    failures: list[RowFailure] = field(default_factory=list)
    chunk_paths: list[Path] = field(default_factory=list)
    skipped_ranges: list[tuple[int, int]] = field(default_factory=list)
    execution_time: float = 0.0


def row_to_inputs(row: Mapping[str, Any], config: StudyConfig) -> tuple[ModelParameters, ContractTerms]:
    r"""
    Turn a design row into model parameters and contract terms.

    ``sigma0``, ``S0`` and ``y0`` come from ``config``; ``a1`` and
    ``sigma_error`` are design features only and do not enter the
    risk-neutral dynamics.

    Raises
    ------
    ParameterValidationError
        If the row violates a model constraint.
    """
    params = ModelParameters(
        alpha=float(row["alpha"]),
        theta=float(row["theta"]),
        beta=float(row.get("beta", 0.0)),
        gamma=float(row.get("gamma", 1.0)),
        kappa=float(row["kappa"]),
        xi=float(row["xi"]),
        lambda_=float(row["lambda"]),
        zeta=float(row["zeta"]),
        sigma0=config.sigma0,
        S0=config.S0,
        y0=config.y0,
    )
    contract = ContractTerms(moneyness=float(row["moneyness"]), maturity=float(row["tao"]))
    return params, contract


def make_pricing_fn(pricer: GarchNTSPricer) -> PricingFn:
    r"""
    Wrap a :class:`~garchnts.core.GarchNTSPricer` as a batch pricing function.

    The returned callable maps ``(row, row_id)`` to call and put prices in
    percent of spot. With a root seed set on the pricer, row ``row_id`` uses
    the child stream :meth:`~garchnts.core.GarchNTSPricer.row_seed`.
    """

    def pricing_fn(row: Mapping[str, Any], row_id: int) -> tuple[float, float]:
        params, contract = row_to_inputs(row, pricer.config)
        res = pricer.price(params, contract, seed=pricer.row_seed(row_id))
        return res.quote.call_pct, res.quote.put_pct

    return pricing_fn


class BatchStudyDriver:
    r"""
    Price a parameter design row by row with chunked persistence.

    Parameters
    ----------
    sampler : ParameterSampler, optional
        Source of the design. Defaults to ``ParameterSampler()``.
    include_skew : bool, default False
        Forwarded to :meth:`ParameterSampler.sample`.
    design : pandas.DataFrame, optional
        Pre-built design; when given, the sampler is not used.

    Attributes
    ----------
    state : StudyState
        Current lifecycle state.

    Examples
    --------
    >>> driver = BatchStudyDriver()
    >>> report = driver.run(25, 10, lambda row, i: (1.0, 1.0), CsvChunkSink("out"))  # doctest: +SKIP
    >>> [p.name for p in report.chunk_paths]  # doctest: +SKIP
    ['chunk_000001_000010.csv', 'chunk_000011_000020.csv', 'chunk_000021_000025.csv']
    """

    def __init__(
        self,
        sampler: ParameterSampler | None = None,
        include_skew: bool = False,
        design: Optional[pd.DataFrame] = None,
    ):
        self.sampler = sampler if sampler is not None else ParameterSampler()
        self.include_skew = include_skew
        self.design = design
        self.state = StudyState.idle

    def run(
        self,
        n_sim: int,
        chunk_size: int,
        pricing_fn: PricingFn,
        output_sink: CsvChunkSink,
        resume: bool = False,
    ) -> StudyReport:
        r"""
        Run the study.

        Parameters
        ----------
        n_sim : int
            Number of design rows to price.
        chunk_size : int
            Rows per persisted chunk.
        pricing_fn : callable
            ``pricing_fn(row, row_id) -> (call_price, put_price)``.
        output_sink : CsvChunkSink
            Durable destination; written only by the calling thread.
        resume : bool, default False
            Skip row ranges whose chunk file already exists.

        Returns
        -------
        StudyReport

        Raises
        ------
        PersistenceError
            If a chunk cannot be written; earlier chunks stay valid.
        """
        if n_sim <= 0:
            raise ValueError("n_sim must be positive")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        t0 = time.time()

        self.state = StudyState.sampling
        design = self.design if self.design is not None else self.sampler.sample(n_sim, self.include_skew)
        if len(design) < n_sim:
            raise ValueError(f"design has {len(design)} rows, {n_sim} requested")
        design = design.reset_index(drop=True)
        columns = ["row_id", *design.columns, *PRICE_COLUMNS]
        done = output_sink.completed_ranges() if resume else set()
        report = StudyReport(n_requested=n_sim)
        logger.info("Starting batch study: %d rows in chunks of %d", n_sim, chunk_size)

        for start in range(1, n_sim + 1, chunk_size):
            end = min(start + chunk_size - 1, n_sim)
            if (start, end) in done:
                logger.info("Chunk %d-%d already persisted, skipping", start, end)
                report.skipped_ranges.append((start, end))
                continue

            buffer = ChunkBuffer(start=start, end=end)
            self.state = StudyState.buffering
            while not buffer.is_full:
                row_id = start + buffer.n_seen
                self.state = StudyState.pricing
                row = design.iloc[row_id - 1].to_dict()
                try:
                    call_price, put_price = pricing_fn(row, row_id)
                except ROW_LEVEL_ERRORS as exc:
                    logger.warning("Row %d skipped (%s): %s", row_id, type(exc).__name__, exc)
                    buffer.record_failure(RowFailure(row_id, type(exc).__name__, str(exc)))
                    self.state = StudyState.buffering
                    continue
                self.state = StudyState.buffering
                buffer.append({"row_id": row_id, **row, "call_price": call_price, "put_price": put_price})

            self.state = StudyState.flushing
            path = output_sink.write(buffer, columns)
            logger.info("Flushed rows %d-%d (%d priced, %d failed) to %s",
                        start, end, len(buffer.rows), len(buffer.failures), path)
            report.chunk_paths.append(path)
            report.n_priced += len(buffer.rows)
            report.failures.extend(buffer.failures)

        self.state = StudyState.done
        report.execution_time = time.time() - t0
        logger.info(
            "Batch study finished: %d priced, %d failed, %d chunks skipped in %.2fs",
            report.n_priced, len(report.failures), len(report.skipped_ranges), report.execution_time,
        )
        return report


def run_study(config: StudyConfig) -> StudyReport:
    r"""
    Run a full batch study from a configuration.

    Builds the sampler, the pricer and the CSV sink from ``config``.
    """
    pricer = GarchNTSPricer(config)
    driver = BatchStudyDriver(ParameterSampler(seed=config.seed), include_skew=config.include_skew)
    return driver.run(
        config.n_sim,
        config.chunk_size,
        make_pricing_fn(pricer),
        CsvChunkSink(config.output_dir),
        resume=config.resume,
    )
