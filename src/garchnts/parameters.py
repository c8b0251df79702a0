r"""
Model and contract parameters for GARCH-stdNTS option pricing.

This module defines:

- :class:`ModelParameters`: the immutable parameter set of one simulation.
- :class:`ContractTerms`: moneyness and maturity of the priced contract.

The stdNTS shape parameters :math:`(\alpha, \theta, \beta, \gamma)` may be
scalars or per-step sequences. The GARCH parameters follow the NGARCH(1,1)
recursion documented in :mod:`garchnts.volatility`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Sequence, Union

import numpy as np

from .exceptions import ParameterValidationError

__all__ = [
    "ModelParameters",
    "ContractTerms",
    "stdnts_gamma",
    "validate_garch",
]

ShapeValue = Union[float, Sequence[float], np.ndarray]


def stdnts_gamma(alpha: float, theta: float, beta: ShapeValue) -> np.ndarray | float:
    r"""
    Scale :math:`\gamma` that gives the NTS law unit variance.

    .. math::
       \gamma = \sqrt{1 - \beta^2 \frac{2 - \alpha}{2\theta}}

    Raises
    ------
    ParameterValidationError
        If :math:`\beta^2 (2-\alpha)/(2\theta) \ge 1`.
    """
    b = np.asarray(beta, dtype=float)
    g2 = 1.0 - b * b * (2.0 - alpha) / (2.0 * theta)
    if np.any(g2 <= 0.0):
        raise ParameterValidationError(
            f"beta={beta!r} is too large for alpha={alpha}, theta={theta}: stdNTS requires "
            "beta^2 (2 - alpha) / (2 theta) < 1"
        )
    out = np.sqrt(g2)
    return float(out) if out.ndim == 0 else out


def validate_garch(kappa, xi, zeta, sigma0) -> None:
    r"""
    Check the GARCH(1,1) constraints :math:`\kappa > 0`, :math:`\xi, \zeta \ge 0`,
    :math:`\xi + \zeta < 1` and :math:`\sigma_0 \ge 0`.

    Parameters may be scalars or arrays; every element is checked.
    """
    kappa = np.asarray(kappa, dtype=float)
    xi = np.asarray(xi, dtype=float)
    zeta = np.asarray(zeta, dtype=float)
    if not np.isfinite(sigma0) or sigma0 < 0.0:
        raise ParameterValidationError(f"sigma0 must be finite and non-negative, got {sigma0}")
    if np.any(~np.isfinite(kappa)) or np.any(kappa <= 0.0):
        raise ParameterValidationError(f"kappa must be positive, got {kappa}")
    if np.any(xi < 0.0) or np.any(zeta < 0.0):
        raise ParameterValidationError(f"xi and zeta must be non-negative, got xi={xi}, zeta={zeta}")
    if np.any(xi + zeta >= 1.0):
        raise ParameterValidationError(f"xi + zeta must be < 1 for stationarity, got xi={xi}, zeta={zeta}")


def _as_shape(value: ShapeValue) -> float | np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return float(arr)
    if arr.ndim != 1 or arr.size == 0:
        raise ParameterValidationError("time-varying shape parameters must be non-empty 1-D sequences")
    arr = arr.copy()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class ModelParameters:
    r"""
    Immutable parameter set of one GARCH-stdNTS simulation.

    Attributes
    ----------
    alpha : float
        Stability index in :math:`(0, 2)`.
    theta : float
        Tempering parameter, :math:`\theta > 0`.
    beta : float or 1-D array
        Skewness parameter; an array gives one value per time step.
    gamma : float or 1-D array
        Scale parameter, :math:`\gamma > 0`. Use :func:`stdnts_gamma` or
        :meth:`from_skew` to obtain the standardized value.
    kappa : float
        Variance intercept of the GARCH recursion.
    xi : float
        Weight of the lagged shock term.
    lambda_ : float
        Leverage shift applied to the lagged innovation.
    zeta : float
        Weight of the lagged variance.
    sigma0 : float
        Initial conditional volatility.
    S0 : float, default 100
        Initial asset price.
    y0 : float, default 0
        Initial log-return; column 0 of the price matrix is :math:`S_0 e^{y_0}`.

    Raises
    ------
    ParameterValidationError
        If any constraint is violated.
    """

    alpha: float
    theta: float
    beta: ShapeValue = 0.0
    gamma: ShapeValue = 1.0
    kappa: float = 0.05
    xi: float = 0.1
    lambda_: float = 0.0
    zeta: float = 0.2
    sigma0: float = 0.01
    S0: float = 100.0
    y0: float = 0.0
    _n_shape_steps: int | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "beta", _as_shape(self.beta))
        object.__setattr__(self, "gamma", _as_shape(self.gamma))
        if not 0.0 < self.alpha < 2.0:
            raise ParameterValidationError(f"alpha must be in (0, 2), got {self.alpha}")
        if not (math.isfinite(self.theta) and self.theta > 0.0):
            raise ParameterValidationError(f"theta must be positive, got {self.theta}")
        if np.any(np.asarray(self.gamma) <= 0.0):
            raise ParameterValidationError(f"gamma must be positive, got {self.gamma}")
        if not math.isfinite(self.lambda_):
            raise ParameterValidationError(f"lambda must be finite, got {self.lambda_}")
        if not (math.isfinite(self.S0) and self.S0 > 0.0):
            raise ParameterValidationError(f"S0 must be positive, got {self.S0}")
        if not math.isfinite(self.y0):
            raise ParameterValidationError(f"y0 must be finite, got {self.y0}")
        # raises when beta leaves no room for a real stdNTS scale
        stdnts_gamma(self.alpha, self.theta, self.beta)
        validate_garch(self.kappa, self.xi, self.zeta, self.sigma0)

        lengths = {np.asarray(v).size for v in (self.beta, self.gamma) if np.ndim(v) == 1}
        if len(lengths) > 1:
            raise ParameterValidationError("time-varying beta and gamma must have the same length")
        object.__setattr__(self, "_n_shape_steps", lengths.pop() if lengths else None)

    @classmethod
    def from_skew(cls, alpha: float, theta: float, B: float, **kwargs) -> "ModelParameters":
        r"""
        Build a standardized parameter set from the skew driver :math:`B \in (-1, 1)`.

        .. math::
           \beta = B \sqrt{\frac{2\theta}{2-\alpha}}, \qquad \gamma = \sqrt{1 - B^2}
        """
        if not -1.0 < B < 1.0:
            raise ParameterValidationError(f"B must be in (-1, 1), got {B}")
        beta = B * math.sqrt(2.0 * theta / (2.0 - alpha))
        # sqrt, not 1 - B**2: gamma**2 + beta**2 (2 - alpha) / (2 theta) == 1 keeps unit variance
        gamma = math.sqrt(1.0 - B * B)
        return cls(alpha=alpha, theta=theta, beta=beta, gamma=gamma, **kwargs)

    @property
    def time_varying(self) -> bool:
        """Whether ``beta`` or ``gamma`` carries one value per step."""
        return self._n_shape_steps is not None

    def shape_path(self, ntimestep: int) -> tuple[float, float, np.ndarray, np.ndarray]:
        r"""
        Return ``(alpha, theta, beta, gamma)`` with ``beta`` and ``gamma`` expanded
        to length ``ntimestep``.

        Raises
        ------
        ParameterValidationError
            If a time-varying sequence does not match ``ntimestep``.
        """
        if self._n_shape_steps is not None and self._n_shape_steps != ntimestep:
            raise ParameterValidationError(
                f"time-varying shape parameters have {self._n_shape_steps} steps, "
                f"simulation requested {ntimestep}"
            )
        beta = np.broadcast_to(np.asarray(self.beta, dtype=float), (ntimestep,))
        gamma = np.broadcast_to(np.asarray(self.gamma, dtype=float), (ntimestep,))
        return self.alpha, self.theta, beta, gamma

    def shape_at(self, t: int) -> tuple[float, float, float, float]:
        """Shape parameters ``(alpha, theta, beta_t, gamma_t)`` at step ``t``."""
        beta = self.beta[t] if np.ndim(self.beta) else self.beta
        gamma = self.gamma[t] if np.ndim(self.gamma) else self.gamma
        return self.alpha, self.theta, float(beta), float(gamma)

    def with_overrides(self, **changes) -> "ModelParameters":
        """Return a validated copy with selected fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ContractTerms:
    r"""
    European contract terms.

    Attributes
    ----------
    moneyness : float
        Strike as a multiple of spot, :math:`K = m S_0`.
    maturity : float
        Time to maturity in years.
    """

    moneyness: float
    maturity: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.moneyness) and self.moneyness > 0.0):
            raise ParameterValidationError(f"moneyness must be positive, got {self.moneyness}")
        if not (math.isfinite(self.maturity) and self.maturity > 0.0):
            raise ParameterValidationError(f"maturity must be positive, got {self.maturity}")

    def maturity_steps(self, steps_per_year: int) -> int:
        r"""
        Number of simulated return steps, :math:`\lceil T \cdot \text{steps\_per\_year} \rceil`.

        Maturity is rounded up, so it may be realized slightly later than
        requested but never earlier. Products within ``1e-9`` (relative) of an
        integer are snapped to it, so ``30/250`` at 250 steps per year gives 30.
        """
        raw = self.maturity * steps_per_year
        nearest = round(raw)
        if abs(raw - nearest) <= 1e-9 * max(1.0, abs(raw)):
            return max(1, int(nearest))
        return max(1, math.ceil(raw))
