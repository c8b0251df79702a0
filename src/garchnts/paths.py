r"""
garchnts.paths
==============

Risk-neutral GARCH-stdNTS price paths.

Log-returns follow

.. math::
   y_{i,t} = r - d - w_{i,t} + \sigma_{i,t}\,\varepsilon_{i,t}, \qquad
   w_{i,t} = \log \phi(-i\sigma_{i,t}) = \log E\big[e^{\sigma_{i,t}\varepsilon}\big],

for :math:`t \ge 1` and :math:`y_{i,0} = y_0`, so that
:math:`E[e^{y_{i,t}} \mid \mathcal{F}_{t-1}] = e^{r-d}`. Prices are
:math:`S_{i,t} = S_0 \exp(\sum_{s \le t} y_{i,s})`.

The stdNTS law has no closed-form risk-neutral drift, so :math:`w_{i,t}` is
evaluated from the characteristic function once per path and step, in
complex arithmetic; the real part is taken explicitly after checking that the
imaginary residue is negligible.

Reproducibility
---------------
Uniforms are drawn per block of ``block_paths`` paths from the
:class:`numpy.random.SeedSequence` child with spawn key ``(block,)``, using
:class:`numpy.random.Philox`. Path :math:`i` therefore sees the same
innovations whatever ``npath`` or the worker count is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

import numpy as np

from .backends import ParallelPathDriver, make_blocks
from .distributions import InnovationLaw, StdNTS
from .exceptions import NumericalInstabilityError, ParameterValidationError
from .parameters import ModelParameters
from .volatility import VolatilityPathGenerator

logger = logging.getLogger(__name__)

__all__ = [
    "RiskNeutralPathSimulator",
    "SimulatedPaths",
    "DriftCorrectionTask",
    "block_generator",
]

_BLOCK_PATHS = 1024  # paths per seed stream
_IMAG_TOL = 1e-10


def _seed_root(seed: int | np.random.SeedSequence | None) -> np.random.SeedSequence:
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def block_generator(root: np.random.SeedSequence, block: int) -> np.random.Generator:
    r"""
    Generator for path block ``block`` of ``root``.

    Equivalent to the ``block``-th child of ``root.spawn(...)`` but does not
    mutate ``root``, so repeated simulations with the same root agree.
    """
    child = np.random.SeedSequence(
        root.entropy,
        spawn_key=tuple(root.spawn_key) + (block,),
        pool_size=root.pool_size,
    )
    return np.random.Generator(np.random.Philox(child))


@dataclass(frozen=True)
class DriftCorrectionTask:
    r"""
    Block task turning innovation/volatility rows into price rows.

    Workers only read the arrays they hold. :meth:`restrict` returns a copy
    carrying just one block, which is what process workers receive.

    Attributes
    ----------
    innovations, volatility : ndarray, shape (rows, ntimestep)
        Slices of the InnovationMatrix and VolatilityMatrix.
    alpha, theta : float
        stdNTS shape parameters.
    beta, gamma : ndarray, shape (ntimestep,)
        Per-step skewness and scale.
    r, d : float
        Risk-free rate and dividend yield per unit of ``dt``.
    dt : float
        Step length.
    y0, S0 : float
        Initial log-return and price.
    law : InnovationLaw
        Supplies ``log_chf``.
    offset : int
        Path index of the first held row.
    imag_tol : float
        Largest tolerated imaginary part of the drift correction.
    """

    innovations: np.ndarray
    volatility: np.ndarray
    alpha: float
    theta: float
    beta: np.ndarray
    gamma: np.ndarray
    r: float
    d: float
    dt: float
    y0: float
    S0: float
    law: Any
    offset: int = 0
    imag_tol: float = _IMAG_TOL

    def restrict(self, start: int, stop: int) -> "DriftCorrectionTask":
        """Copy of this task holding only paths ``[start, stop)``."""
        a, b = start - self.offset, stop - self.offset
        return replace(
            self,
            innovations=self.innovations[a:b].copy(),
            volatility=self.volatility[a:b].copy(),
            offset=start,
        )

    def drift_correction(self, sigma: np.ndarray) -> np.ndarray:
        r"""
        Real drift correction :math:`w = \log\phi(-i\sigma)` for ``sigma`` of shape (rows, ntimestep - 1).

        Raises
        ------
        NumericalInstabilityError
            If the correction is non-finite or its imaginary part exceeds ``imag_tol``.
        """
        w = np.asarray(
            self.law.log_chf(-1j * sigma, self.alpha, self.theta, self.beta[1:], self.gamma[1:]),
            dtype=complex,
        )
        if w.size == 0:
            return w.real
        if not np.all(np.isfinite(w)):
            raise NumericalInstabilityError(
                f"non-finite drift correction for alpha={self.alpha}, theta={self.theta}, "
                f"max sigma={float(np.max(sigma)):.6g}"
            )
        residue = float(np.max(np.abs(w.imag)))
        if residue > self.imag_tol:
            raise NumericalInstabilityError(
                f"drift correction has imaginary residue {residue:.3g} > {self.imag_tol:g} "
                f"(alpha={self.alpha}, theta={self.theta}, max sigma={float(np.max(sigma)):.6g})"
            )
        return w.real

    def __call__(self, start: int, stop: int) -> np.ndarray:
        a, b = start - self.offset, stop - self.offset
        eps = self.innovations[a:b]
        sigma = self.volatility[a:b]
        w = self.drift_correction(sigma[:, 1:])
        log_ret = np.empty(eps.shape, dtype=float)
        log_ret[:, 0] = self.y0
        log_ret[:, 1:] = (self.r - self.d) * self.dt - w + sigma[:, 1:] * eps[:, 1:]
        return self.S0 * np.exp(np.cumsum(log_ret, axis=1))


@dataclass
class SimulatedPaths:
    r"""
    Matrices of one simulation, all of shape ``(npath, ntimestep)``.

    Attributes
    ----------
    innovations : ndarray
        InnovationMatrix.
    volatility : ndarray
        VolatilityMatrix.
    prices : ndarray
        PriceMatrix.
    """

    innovations: np.ndarray
    volatility: np.ndarray
    prices: np.ndarray

    @property
    def npath(self) -> int:
        return self.prices.shape[0]

    @property
    def ntimestep(self) -> int:
        return self.prices.shape[1]

    @property
    def terminal(self) -> np.ndarray:
        """Prices in the last column."""
        return self.prices[:, -1]


class RiskNeutralPathSimulator:
    r"""
    Simulate risk-neutral GARCH-stdNTS price paths.

    Parameters
    ----------
    law : InnovationLaw, optional
        Innovation distribution. Defaults to :class:`~garchnts.distributions.StdNTS`.
    volatility : VolatilityPathGenerator, optional
        GARCH recursion.
    driver : ParallelPathDriver, optional
        Fan-out of the drift-correction step. Defaults to ``ParallelPathDriver()``.
    block_paths : int, default 1024
        Paths per seed stream.
    imag_tol : float, default 1e-10
        Tolerance for the imaginary residue of the drift correction.

    Examples
    --------
    >>> params = ModelParameters(alpha=1.2, theta=1.0, kappa=1e-5, xi=0.1, lambda_=0.3, zeta=0.2)
    >>> sim = RiskNeutralPathSimulator(driver=ParallelPathDriver(backend="sequential"))
    >>> sim.simulate(params, npath=100, ntimestep=31, r=0.02 / 250, seed=7).shape
    (100, 31)
    """

    def __init__(
        self,
        law: InnovationLaw | None = None,
        volatility: VolatilityPathGenerator | None = None,
        driver: ParallelPathDriver | None = None,
        block_paths: int = _BLOCK_PATHS,
        imag_tol: float = _IMAG_TOL,
    ):
        if block_paths <= 0:
            raise ValueError("block_paths must be positive")
        self.law = law if law is not None else StdNTS()
        self.volatility = volatility if volatility is not None else VolatilityPathGenerator()
        self.driver = driver if driver is not None else ParallelPathDriver()
        self.block_paths = block_paths
        self.imag_tol = imag_tol

    def draw_innovations(
        self,
        params: ModelParameters,
        npath: int,
        ntimestep: int,
        seed: int | np.random.SeedSequence | None = None,
    ) -> np.ndarray:
        r"""
        Draw the InnovationMatrix of shape ``(npath, ntimestep)``.

        Column :math:`t` uses the shape parameters of step :math:`t`.
        """
        if npath <= 0 or ntimestep <= 0:
            raise ValueError("npath and ntimestep must be positive")
        alpha, theta, beta, gamma = params.shape_path(ntimestep)
        constant = bool(np.all(beta == beta[0]) and np.all(gamma == gamma[0]))
        root = _seed_root(seed)
        eps = np.empty((npath, ntimestep), dtype=float)
        for b, (i, j) in enumerate(make_blocks(npath, self.block_paths)):
            u = block_generator(root, b).random((j - i, ntimestep))
            if constant:
                eps[i:j] = self.law.draw(u, alpha, theta, beta[0], gamma[0])
            else:
                for t in range(ntimestep):
                    eps[i:j, t] = self.law.draw(u[:, t], alpha, theta, beta[t], gamma[t])
        return eps

    def simulate_paths(
        self,
        params: ModelParameters,
        npath: int,
        ntimestep: int,
        r: float,
        d: float = 0.0,
        dt: float = 1.0,
        seed: int | np.random.SeedSequence | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> SimulatedPaths:
        r"""
        Simulate innovations, volatilities and prices.

        Parameters
        ----------
        params : ModelParameters
            Model parameters.
        npath : int
            Number of independent paths.
        ntimestep : int
            Number of columns, including the initial column.
        r, d : float
            Risk-free rate and dividend yield per unit of ``dt``.
        dt : float, default 1
            Step length; with per-step rates keep the default.
        seed : int or SeedSequence, optional
            Root seed; ``None`` draws fresh OS entropy.
        progress_callback : callable, optional
            Forwarded to the driver.

        Returns
        -------
        SimulatedPaths

        Raises
        ------
        ParameterValidationError
            If the parameters do not fit the requested grid.
        NumericalInstabilityError
            If the drift correction is not real and finite.
        WorkerFailure
            If a worker fails.
        """
        if dt <= 0.0:
            raise ParameterValidationError(f"dt must be positive, got {dt}")
        eps = self.draw_innovations(params, npath, ntimestep, seed)
        sigma = self.volatility.generate(eps, params.kappa, params.xi, params.lambda_, params.zeta, params.sigma0)
        alpha, theta, beta, gamma = params.shape_path(ntimestep)
        task = DriftCorrectionTask(
            innovations=eps,
            volatility=sigma,
            alpha=alpha,
            theta=theta,
            beta=np.array(beta),
            gamma=np.array(gamma),
            r=float(r),
            d=float(d),
            dt=float(dt),
            y0=params.y0,
            S0=params.S0,
            law=self.law,
            imag_tol=self.imag_tol,
        )
        prices = self.driver.run(npath, task, progress_callback)
        return SimulatedPaths(innovations=eps, volatility=sigma, prices=prices)

    def simulate(
        self,
        params: ModelParameters,
        npath: int,
        ntimestep: int,
        r: float,
        d: float = 0.0,
        dt: float = 1.0,
        seed: int | np.random.SeedSequence | None = None,
    ) -> np.ndarray:
        """Simulate and return only the PriceMatrix. See :meth:`simulate_paths`."""
        return self.simulate_paths(params, npath, ntimestep, r, d=d, dt=dt, seed=seed).prices
