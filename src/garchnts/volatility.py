r"""
Conditional volatility paths under an NGARCH(1,1) recursion.

For every path :math:`i` and step :math:`t \ge 1`

.. math::
   \sigma_{i,t}^2 = \kappa + \xi\,\sigma_{i,t-1}^2 (\varepsilon_{i,t-1} - \lambda)^2
                   + \zeta\,\sigma_{i,t-1}^2,

with :math:`\sigma_{i,0} = \sigma_0`. The recursion only runs along the time
axis, so paths never interact and :math:`\sigma_{i,t}` depends on innovations
up to :math:`t-1` only.
"""

from __future__ import annotations

import numpy as np

from .exceptions import ParameterValidationError
from .parameters import validate_garch

__all__ = ["VolatilityPathGenerator"]


def _per_step(value, nstep: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return np.full(nstep, float(arr))
    if arr.shape != (nstep,):
        raise ParameterValidationError(f"{name} must be a scalar or have one value per step ({nstep})")
    return arr


class VolatilityPathGenerator:
    r"""
    Fold the GARCH state along the time axis of an innovation matrix.

    GARCH parameters may be scalars or sequences with one value per step;
    the value at step :math:`t` drives the update that produces column :math:`t`.

    Examples
    --------
    >>> eps = np.zeros((2, 3))
    >>> VolatilityPathGenerator().generate(eps, kappa=0.0001, xi=0.1, lambda_=0.0, zeta=0.8, sigma0=0.01)[:, 0]
    array([0.01, 0.01])
    """

    def generate(self, innovations, kappa, xi, lambda_, zeta, sigma0: float) -> np.ndarray:
        r"""
        Produce the volatility matrix matching ``innovations``.

        Parameters
        ----------
        innovations : array_like, shape (npath, ntimestep)
            InnovationMatrix.
        kappa, xi, lambda_, zeta : float or array_like
            GARCH parameters (scalar or length ``ntimestep``).
        sigma0 : float
            Initial volatility, written to column 0 of every path.

        Returns
        -------
        ndarray, shape (npath, ntimestep)
            VolatilityMatrix.

        Raises
        ------
        ParameterValidationError
            On a negative ``sigma0``, non-positive ``kappa``, negative ``xi`` or
            ``zeta``, ``xi + zeta >= 1``, or a non 2-D input.
        """
        eps = np.asarray(innovations, dtype=float)
        if eps.ndim != 2:
            raise ParameterValidationError(f"innovations must be a 2-D (npath, ntimestep) array, got ndim={eps.ndim}")
        validate_garch(kappa, xi, zeta, sigma0)
        npath, nstep = eps.shape
        kappa = _per_step(kappa, nstep, "kappa")
        xi = _per_step(xi, nstep, "xi")
        lam = _per_step(lambda_, nstep, "lambda")
        zeta = _per_step(zeta, nstep, "zeta")

        sigma = np.empty((npath, nstep), dtype=float)
        sigma[:, 0] = sigma0
        for t in range(1, nstep):
            prev_var = sigma[:, t - 1] * sigma[:, t - 1]
            shock = eps[:, t - 1] - lam[t]
            sigma[:, t] = np.sqrt(kappa[t] + xi[t] * prev_var * shock * shock + zeta[t] * prev_var)
        return sigma
