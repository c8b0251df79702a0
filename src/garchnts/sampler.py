r"""
garchnts.sampler
================

Low-discrepancy design of GARCH-stdNTS parameter sets.

Points of an unscrambled Halton sequence (:class:`scipy.stats.qmc.Halton`)
are mapped column by column to their target marginals:

=============  ==========================================  ==========================
column         transform of :math:`u \in [0, 1)`           notes
=============  ==========================================  ==========================
alpha          :math:`2u`                                  :math:`(0, 2)`
theta          exponential inverse CDF, mean 1.2544
a1             :math:`2u - 1`                              exact 0 replaced
moneyness      :math:`0.5 + 0.5u`                          exact 1 resampled
tao            :math:`0.4 + 0.6u`                          maturity in years
kappa          exponential inverse CDF, mean 1
xi             :math:`u`
zeta           :math:`u (1 - \xi)`                         :math:`\xi + \zeta < 1`
sigma_error    :math:`c(2u - 1)`, :math:`c = 0.05406`      exact 0 replaced
lambda         :math:`0.8u`
B (skew)       :math:`2u - 1`                              exact 0 replaced
=============  ==========================================  ==========================

In skew mode :math:`\beta = B\sqrt{2\theta/(2-\alpha)}` and
:math:`\gamma = \sqrt{1 - B^2}`; otherwise :math:`\beta = 0, \gamma = 1`.
The first 20 points are a burn-in and never reach callers.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy.stats import expon, qmc

logger = logging.getLogger(__name__)

__all__ = [
    "ParameterSampler",
    "halton_points",
    "DESIGN_COLUMNS",
    "SKEW_COLUMNS",
    "SINGULAR_COLUMNS",
    "BURN_IN",
]

BURN_IN = 20
THETA_MEAN = 1.2544
SIGMA_ERROR_HALF_WIDTH = 0.05406
TINY = np.finfo(float).tiny  # smallest positive normal double

DESIGN_COLUMNS = (
    "alpha",
    "theta",
    "a1",
    "moneyness",
    "tao",
    "kappa",
    "xi",
    "zeta",
    "sigma_error",
    "lambda",
)
SKEW_COLUMNS = ("B", "beta", "gamma")
SINGULAR_COLUMNS = ("a1", "sigma_error", "B")


def halton_points(n: int, dim: int) -> np.ndarray:
    r"""
    First ``n`` points of the unscrambled ``dim``-dimensional Halton sequence.

    Deterministic given ``(n, dim)``; the first point is the origin.
    """
    return qmc.Halton(d=dim, scramble=False).random(n)


def _avoid_zero(x: np.ndarray) -> np.ndarray:
    return np.where(x == 0.0, TINY, x)


class ParameterSampler:
    r"""
    Draw a ParameterDesign from a Halton sequence.

    Parameters
    ----------
    burn_in : int, default 20
        Initial points discarded before any row is emitted.
    seed : int, optional
        Seed of the generator used to resample a moneyness of exactly 1.

    Examples
    --------
    >>> design = ParameterSampler().sample(5)
    >>> list(design.columns)[:3]
    ['alpha', 'theta', 'a1']
    """

    def __init__(self, burn_in: int = BURN_IN, seed: int | None = None):
        if burn_in < 0:
            raise ValueError("burn_in must be non-negative")
        self.burn_in = burn_in
        self.rng = np.random.default_rng(seed)

    def sample(self, n: int, include_skew: bool = False) -> pd.DataFrame:
        r"""
        Return ``n`` parameter rows.

        Parameters
        ----------
        n : int
            Number of rows.
        include_skew : bool, default False
            Add the skew driver ``B`` and the derived ``beta``/``gamma``.

        Returns
        -------
        pandas.DataFrame
            Columns :data:`DESIGN_COLUMNS`, then ``B`` (skew mode only),
            ``beta`` and ``gamma``, with a ``RangeIndex`` starting at 0.
        """
        if n <= 0:
            raise ValueError("n must be positive")
        dim = len(DESIGN_COLUMNS) + (1 if include_skew else 0)
        u = halton_points(n + self.burn_in, dim)[self.burn_in:]
        logger.debug("Sampled %d Halton points of dimension %d (burn-in %d)", n, dim, self.burn_in)

        alpha = 2.0 * u[:, 0]
        theta = expon.ppf(u[:, 1], scale=THETA_MEAN)
        a1 = 2.0 * u[:, 2] - 1.0
        moneyness = self._moneyness(u[:, 3])
        tao = 0.4 + 0.6 * u[:, 4]
        kappa = expon.ppf(u[:, 5], scale=1.0)
        xi = u[:, 6]
        zeta = u[:, 7] * (1.0 - xi)
        sigma_error = SIGMA_ERROR_HALF_WIDTH * (2.0 * u[:, 8] - 1.0)
        lam = 0.8 * u[:, 9]

        design = pd.DataFrame(
            {
                "alpha": alpha,
                "theta": theta,
                "a1": a1,
                "moneyness": moneyness,
                "tao": tao,
                "kappa": kappa,
                "xi": xi,
                "zeta": zeta,
                "sigma_error": sigma_error,
                "lambda": lam,
            }
        )
        if include_skew:
            design["B"] = 2.0 * u[:, 10] - 1.0
        for col in SINGULAR_COLUMNS:
            if col in design:
                design[col] = _avoid_zero(design[col].to_numpy())

        if include_skew:
            B = design["B"].to_numpy()
            design["beta"] = B * np.sqrt(2.0 * theta / (2.0 - alpha))
            # sqrt, not 1 - B**2: gamma**2 + beta**2 (2 - alpha) / (2 theta) == 1 keeps unit variance
            design["gamma"] = np.sqrt(1.0 - B * B)
        else:
            design["beta"] = 0.0
            design["gamma"] = 1.0
        return design

    def _moneyness(self, u: np.ndarray) -> np.ndarray:
        m = 0.5 + 0.5 * u
        hit = m == 1.0
        while np.any(hit):
            jitter = self.rng.uniform(-0.5, 0.5, size=int(hit.sum()))
            m[hit] = 0.5 + 0.5 * (0.5 + jitter)
            hit = m == 1.0
        return m
