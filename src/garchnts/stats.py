r"""
garchnts.stats
==============
Sampling statistics of Monte Carlo price estimators.

This module defines:

- :class:`CIMethod`: choice of critical value for confidence intervals.
- :func:`autocrit`: z or Student-t critical value for a confidence level.
- :func:`mean_ci`: sample mean, standard error and parametric CI.

For discounted payoffs :math:`X_1, \dots, X_n` the interval is

.. math::
   \bar X \pm c \frac{s}{\sqrt{n}},

where :math:`c` is a z critical value, or a t critical value when
:math:`n < 30` under ``"auto"``.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = ["CIMethod", "autocrit", "mean_ci"]

_T_SWITCH = 30  # below this n_eff "auto" uses Student-t


class CIMethod(str, Enum):
    r"""
    Parametric strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Choose Student-t when :math:`n < 30`, otherwise z.
    z : str
        Always use the normal :math:`z` critical value.
    t : str
        Always use the Student-:math:`t` critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Two-sided critical value for ``confidence``.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}
        Critical value family.

    Returns
    -------
    tuple[float, str]
        Critical value and the resolved method (``"z"`` or ``"t"``).

    Examples
    --------
    >>> round(autocrit(0.95, 1000, "z")[0], 2)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    method = CIMethod(method).value
    if method == "auto":
        method = "t" if n < _T_SWITCH else "z"
    q = 0.5 + 0.5 * confidence
    if method == "t":
        return float(student_t.ppf(q, df=max(1, n - 1))), "t"
    return float(norm.ppf(q)), "z"


def mean_ci(x, confidence: float = 0.95, method: str = "auto") -> dict[str, float | str]:
    r"""
    Mean, standard error and parametric CI of a sample.

    Parameters
    ----------
    x : array_like
        Sample (e.g. discounted payoffs).
    confidence : float, default 0.95
        Confidence level.
    method : {"auto", "z", "t"}, default "auto"
        Critical value family, see :func:`autocrit`.

    Returns
    -------
    dict[str, float | str]
        Keys ``mean``, ``se``, ``low``, ``high``, ``crit``, ``confidence``, ``method``.
        With fewer than two observations ``se``, ``low`` and ``high`` are NaN.
    """
    arr = np.asarray(x, dtype=float).ravel()
    n = arr.size
    mu = float(np.mean(arr)) if n else float("nan")
    if n < 2:
        return {
            "mean": mu,
            "se": float("nan"),
            "low": float("nan"),
            "high": float("nan"),
            "crit": float("nan"),
            "confidence": confidence,
            "method": method,
        }
    s = float(np.std(arr, ddof=1))
    # degenerate data -> zero SE -> CI collapses to point
    se = s / np.sqrt(n) if s > 0.0 else 0.0
    crit, resolved = autocrit(confidence, n, method)
    return {
        "mean": mu,
        "se": float(se),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
        "crit": float(crit),
        "confidence": confidence,
        "method": resolved,
    }
