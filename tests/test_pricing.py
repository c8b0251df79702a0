import numpy as np
import pytest

from garchnts.pricing import OptionPricer, european_payoff
from garchnts.stats import autocrit, mean_ci


@pytest.fixture
def two_paths():
    return np.array([[100.0, 105.0, 110.0], [100.0, 95.0, 90.0]])


class TestEuropeanPayoff:
    """Test payoff functions"""

    def test_call_and_put(self):
        S_T = np.array([90.0, 100.0, 110.0])
        np.testing.assert_array_equal(european_payoff(S_T, 100.0, "call"), [0.0, 0.0, 10.0])
        np.testing.assert_array_equal(european_payoff(S_T, 100.0, "put"), [10.0, 0.0, 0.0])

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            european_payoff(np.ones(2), 1.0, "straddle")


class TestOptionPricer:
    """Test discounted payoff averaging"""

    def test_undiscounted_atm(self, two_paths):
        q = OptionPricer().price(two_paths, r=0.0, moneyness=1.0)
        assert q.call == pytest.approx(5.0)
        assert q.put == pytest.approx(5.0)
        assert q.strike == pytest.approx(100.0)
        assert q.maturity_step == 2

    def test_discounting_uses_step(self, two_paths):
        q = OptionPricer().price(two_paths, r=0.01, moneyness=1.0)
        assert q.call == pytest.approx(5.0 * np.exp(-0.02))

    def test_explicit_maturity_step(self, two_paths):
        q = OptionPricer().price(two_paths, r=0.0, moneyness=1.0, maturity_step=1)
        assert q.call == pytest.approx(2.5)
        assert q.maturity_step == 1

    def test_percent_of_spot(self, two_paths):
        q = OptionPricer().price(two_paths, r=0.0, moneyness=0.9)
        assert q.call == pytest.approx(10.0)
        assert q.call_pct == pytest.approx(10.0)
        assert q.put_pct == pytest.approx(0.0)

    def test_explicit_spot(self, two_paths):
        q = OptionPricer().price(two_paths * 2.0, r=0.0, moneyness=1.0, S0=100.0)
        assert q.strike == pytest.approx(100.0)
        assert q.S0 == 100.0

    def test_multiple_moneyness(self, two_paths):
        quotes = OptionPricer().price(two_paths, r=0.0, moneyness=[0.9, 1.0, 1.1])
        assert [q.moneyness for q in quotes] == [0.9, 1.0, 1.1]
        calls = [q.call for q in quotes]
        assert calls == sorted(calls, reverse=True)

    def test_put_call_parity_on_matrix(self):
        """C - P = e^{-rn}(mean(S_T) - K) for any matrix"""
        rng = np.random.default_rng(0)
        prices = 100.0 * np.exp(np.cumsum(np.c_[np.zeros(500), rng.normal(0, 0.01, (500, 10))], axis=1))
        q = OptionPricer().price(prices, r=1e-4, moneyness=1.05)
        disc = np.exp(-1e-4 * 10)
        assert q.call - q.put == pytest.approx(disc * (prices[:, -1].mean() - 105.0))

    def test_flat_paths_price_zero(self):
        """Paths pinned at the spot are worth nothing at the money"""
        prices = np.full((50, 5), 100.0)
        q = OptionPricer().price(prices, r=1e-4, moneyness=1.0)
        assert (q.call, q.put) == (0.0, 0.0)

    def test_prices_non_negative(self):
        """Call and put estimates never go below zero at any moneyness"""
        rng = np.random.default_rng(11)
        steps = rng.normal(0.0, 0.03, (400, 20))
        prices = 100.0 * np.exp(np.cumsum(np.c_[np.zeros(400), steps], axis=1))
        levels = [0.5, 0.8, 1.0, 1.2, 2.0]
        quotes = OptionPricer().price(prices, r=2e-4, moneyness=levels)
        for q in quotes:
            assert q.call >= 0.0
            assert q.put >= 0.0
        assert quotes[-1].put > quotes[0].put

    def test_standard_error_reported(self, two_paths):
        q = OptionPricer().price(two_paths, r=0.0, moneyness=1.0)
        assert q.call_se == pytest.approx(np.std([10.0, 0.0], ddof=1) / np.sqrt(2))
        assert q.call_stats["low"] < q.call < q.call_stats["high"]

    def test_deterministic(self, two_paths):
        a = OptionPricer().price(two_paths, r=0.001, moneyness=0.97)
        b = OptionPricer().price(two_paths, r=0.001, moneyness=0.97)
        assert (a.call, a.put) == (b.call, b.put)

    @pytest.mark.parametrize("step", [-1, 3])
    def test_bad_step(self, two_paths, step):
        with pytest.raises(ValueError):
            OptionPricer().price(two_paths, r=0.0, moneyness=1.0, maturity_step=step)

    def test_american_rejected(self, two_paths):
        with pytest.raises(ValueError):
            OptionPricer().price(two_paths, r=0.0, moneyness=1.0, option_style="american")

    def test_bad_matrix(self):
        with pytest.raises(ValueError):
            OptionPricer().price(np.ones(5), r=0.0, moneyness=1.0)

    def test_bad_moneyness(self, two_paths):
        with pytest.raises(ValueError):
            OptionPricer().price(two_paths, r=0.0, moneyness=0.0)


class TestStats:
    """Test confidence interval helpers"""

    def test_autocrit_z(self):
        crit, method = autocrit(0.95, 1000)
        assert method == "z"
        assert crit == pytest.approx(1.959964, rel=1e-5)

    def test_autocrit_t_for_small_n(self):
        crit, method = autocrit(0.95, 10)
        assert method == "t"
        assert crit > 1.96

    def test_autocrit_bad_confidence(self):
        with pytest.raises(ValueError):
            autocrit(1.5, 10)

    def test_mean_ci_degenerate(self):
        out = mean_ci(np.full(50, 3.0))
        assert out["se"] == 0.0
        assert out["low"] == out["high"] == 3.0

    def test_mean_ci_single_value(self):
        out = mean_ci([1.0])
        assert out["mean"] == 1.0
        assert np.isnan(out["se"])
