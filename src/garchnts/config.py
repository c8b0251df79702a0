r"""
garchnts.config
===============
Run configuration for direct pricing and batch studies.

:class:`StudyConfig` is a typed, explicit configuration object. Values can be
given in code or loaded from a YAML mapping with :func:`load_config`:

.. code-block:: yaml

   n_sim: 5000
   n_paths: 10000
   chunk_size: 500
   output_dir: results/run1
   include_skew: true
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .backends import default_workers

__all__ = ["StudyConfig", "load_config", "STEPS_PER_YEAR"]

STEPS_PER_YEAR = 250


@dataclass(slots=True)
class StudyConfig:
    r"""
    Shared configuration of the pricing engine and the batch driver.

    Attributes
    ----------
    n_sim : int, default 1000
        Number of parameter rows in a batch study.
    n_paths : int, default 10_000
        Simulated paths per pricing call.
    steps_per_year : int, default 250
        Converts maturities in years into time steps.
    r : float, default 0.02/250
        Risk-free rate per step.
    d : float, default 0
        Dividend yield per step.
    n_workers : int, optional
        Worker-pool size; ``None`` means CPU count minus one.
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
        Path fan-out backend.
    chunk_size : int, default 1000
        Result rows per persisted chunk.
    output_dir : str, default "results"
        Directory receiving chunk files.
    sigma0 : float, default 0.01
        Initial conditional volatility.
    S0 : float, default 100
        Initial price.
    y0 : float, default 0
        Initial log-return.
    include_skew : bool, default False
        Sample the skew driver ``B`` and derive ``beta``/``gamma`` from it.
    seed : int, optional
        Root seed for path simulation and moneyness resampling.
    resume : bool, default False
        Skip row ranges whose chunk files already exist.

    Notes
    -----
    The configuration is immutable by convention at runtime; prefer
    :meth:`with_overrides` to construct a modified copy.
    """

    n_sim: int = 1000
    n_paths: int = 10_000
    steps_per_year: int = STEPS_PER_YEAR
    r: float = 0.02 / STEPS_PER_YEAR
    d: float = 0.0
    n_workers: Optional[int] = None
    backend: str = "auto"
    chunk_size: int = 1000
    output_dir: str = "results"
    sigma0: float = 0.01
    S0: float = 100.0
    y0: float = 0.0
    include_skew: bool = False
    seed: Optional[int] = None
    resume: bool = False

    def __post_init__(self) -> None:
        r"""
        Validate field ranges.

        Raises
        ------
        ValueError
            If any field is outside its allowed range.
        """
        if self.n_sim <= 0:
            raise ValueError("n_sim must be positive")
        if self.n_paths <= 0:
            raise ValueError("n_paths must be positive")
        if self.steps_per_year <= 0:
            raise ValueError("steps_per_year must be positive")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.n_workers is not None and self.n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if self.backend not in ("auto", "sequential", "thread", "process"):
            raise ValueError(f"backend must be one of 'auto', 'sequential', 'thread', 'process', got '{self.backend}'")
        if self.sigma0 < 0.0:
            raise ValueError("sigma0 must be non-negative")
        if self.S0 <= 0.0:
            raise ValueError("S0 must be positive")
        if not all(math.isfinite(v) for v in (self.r, self.d, self.y0)):
            raise ValueError("r, d and y0 must be finite")

    def with_overrides(self, **changes) -> "StudyConfig":
        r"""
        Return a shallow copy with selected fields replaced.

        Examples
        --------
        >>> cfg = StudyConfig()
        >>> cfg.with_overrides(n_paths=2000).n_paths
        2000
        """
        return replace(self, **changes)

    @property
    def workers(self) -> int:
        """Effective worker-pool size."""
        return self.n_workers or default_workers()

    def steps_to_years(self, steps: int) -> float:
        """Convert a step count into years."""
        return steps / self.steps_per_year

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "StudyConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**dict(values))


def load_config(path: str | Path) -> StudyConfig:
    r"""
    Load a :class:`StudyConfig` from a YAML file.

    Parameters
    ----------
    path : str or Path
        YAML file holding a mapping of :class:`StudyConfig` fields. An empty
        file yields the defaults.

    Returns
    -------
    StudyConfig

    Raises
    ------
    ValueError
        If the document is not a mapping or contains unknown keys.
    """
    with open(path, "r", encoding="utf-8") as f:
        values = yaml.safe_load(f) or {}
    if not isinstance(values, Mapping):
        raise ValueError(f"{path}: expected a mapping of configuration values")
    return StudyConfig.from_mapping(values)
