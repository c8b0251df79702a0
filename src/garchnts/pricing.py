r"""
European option prices from simulated price paths.

For strike :math:`K = m S_0` and terminal step :math:`n`

.. math::
   C = e^{-r n \Delta t}\, \frac{1}{N}\sum_i (S_{i,n} - K)^+, \qquad
   P = e^{-r n \Delta t}\, \frac{1}{N}\sum_i (K - S_{i,n})^+ .

Quotes are also reported as a percentage of spot, :math:`100\,C/S_0`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .stats import mean_ci

__all__ = ["OptionQuote", "OptionPricer", "european_payoff"]


def european_payoff(S_T: np.ndarray, K: float, option_type: str) -> np.ndarray:
    r"""
    Evaluate the terminal payoff :math:`\Phi(S_T)` of a European option.

    .. math::
       \Phi_{\text{call}}(S_T) = \max(S_T - K, 0), \qquad
       \Phi_{\text{put}}(S_T) = \max(K - S_T, 0).

    Parameters
    ----------
    S_T : ndarray
        Terminal prices.
    K : float
        Strike level :math:`K`.
    option_type : {"call", "put"}
        Payoff family.

    Returns
    -------
    ndarray
        Non-negative payoffs.

    Raises
    ------
    ValueError
        If ``option_type`` is not ``"call"`` or ``"put"``.
    """
    if option_type == "call":
        return np.maximum(S_T - K, 0.0)
    if option_type == "put":
        return np.maximum(K - S_T, 0.0)
    raise ValueError(f"option_type must be 'call' or 'put', got '{option_type}'")


@dataclass
class OptionQuote:
    r"""
    Call and put estimates for one moneyness level.

    Attributes
    ----------
    moneyness : float
        Strike over spot.
    strike : float
        Absolute strike.
    S0 : float
        Spot used for the strike and the percentage quotes.
    maturity_step : int
        Terminal column used for the payoff.
    call, put : float
        Discounted mean payoffs.
    call_stats, put_stats : dict
        Output of :func:`~garchnts.stats.mean_ci` for the discounted payoffs.
    """

    moneyness: float
    strike: float
    S0: float
    maturity_step: int
    call: float
    put: float
    call_stats: dict = field(default_factory=dict)
    put_stats: dict = field(default_factory=dict)

    @property
    def call_pct(self) -> float:
        """Call price as a percentage of spot."""
        return 100.0 * self.call / self.S0

    @property
    def put_pct(self) -> float:
        """Put price as a percentage of spot."""
        return 100.0 * self.put / self.S0

    @property
    def call_se(self) -> float:
        return float(self.call_stats.get("se", float("nan")))

    @property
    def put_se(self) -> float:
        return float(self.put_stats.get("se", float("nan")))


class OptionPricer:
    r"""
    Turn a PriceMatrix into discounted call/put estimates.

    The result is a deterministic function of the matrix.

    Parameters
    ----------
    confidence : float, default 0.95
        Confidence level of the reported intervals.
    ci_method : {"auto", "z", "t"}, default "auto"
        Critical value family.

    Examples
    --------
    >>> prices = np.full((4, 3), 100.0)
    >>> q = OptionPricer().price(prices, r=0.0, moneyness=1.0)
    >>> (q.call, q.put)
    (0.0, 0.0)
    """

    _STYLES = ("european",)

    def __init__(self, confidence: float = 0.95, ci_method: str = "auto"):
        self.confidence = confidence
        self.ci_method = ci_method

    def price(
        self,
        prices: np.ndarray,
        r: float,
        moneyness: float | Sequence[float],
        option_style: str = "european",
        maturity_step: int | None = None,
        dt: float = 1.0,
        S0: float | None = None,
    ) -> OptionQuote | list[OptionQuote]:
        r"""
        Price European calls and puts for one or more moneyness levels.

        Parameters
        ----------
        prices : ndarray, shape (npath, ntimestep)
            PriceMatrix.
        r : float
            Risk-free rate per unit of ``dt``.
        moneyness : float or sequence of float
            Strike(s) as multiples of :math:`S_0`.
        option_style : {"european"}, default "european"
            Exercise style.
        maturity_step : int, optional
            Terminal column; defaults to the last column.
        dt : float, default 1
            Step length.
        S0 : float, optional
            Spot for strikes and percentage quotes; defaults to ``prices[0, 0]``.

        Returns
        -------
        OptionQuote or list of OptionQuote
            One quote for a scalar ``moneyness``, a list in input order otherwise.

        Raises
        ------
        ValueError
            On an unsupported style, a malformed matrix or an out-of-range ``maturity_step``.
        """
        if option_style not in self._STYLES:
            raise ValueError(f"option_style must be one of {self._STYLES}, got '{option_style}'")
        prices = np.asarray(prices, dtype=float)
        if prices.ndim != 2 or prices.size == 0:
            raise ValueError("prices must be a non-empty 2-D (npath, ntimestep) array")
        n_cols = prices.shape[1]
        step = n_cols - 1 if maturity_step is None else int(maturity_step)
        if not 0 <= step < n_cols:
            raise ValueError(f"maturity_step must be in [0, {n_cols - 1}], got {maturity_step}")

        S0 = float(prices[0, 0]) if S0 is None else float(S0)
        S_T = prices[:, step]
        discount = float(np.exp(-r * step * dt))

        scalar = np.ndim(moneyness) == 0
        levels = [float(moneyness)] if scalar else [float(m) for m in moneyness]
        quotes = []
        for m in levels:
            if m <= 0.0:
                raise ValueError(f"moneyness must be positive, got {m}")
            K = m * S0
            call_pv = discount * european_payoff(S_T, K, "call")
            put_pv = discount * european_payoff(S_T, K, "put")
            call_stats = mean_ci(call_pv, self.confidence, self.ci_method)
            put_stats = mean_ci(put_pv, self.confidence, self.ci_method)
            quotes.append(
                OptionQuote(
                    moneyness=m,
                    strike=K,
                    S0=S0,
                    maturity_step=step,
                    call=float(call_stats["mean"]),
                    put=float(put_stats["mean"]),
                    call_stats=call_stats,
                    put_stats=put_stats,
                )
            )
        return quotes[0] if scalar else quotes
