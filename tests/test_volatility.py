import numpy as np
import pytest

from garchnts.exceptions import ParameterValidationError
from garchnts.volatility import VolatilityPathGenerator


@pytest.fixture
def gen():
    return VolatilityPathGenerator()


class TestVolatilityRecursion:
    """Test the NGARCH(1,1) fold"""

    def test_first_column_is_sigma0(self, gen):
        """Column 0 holds sigma0 for every path"""
        eps = np.random.default_rng(0).standard_normal((5, 4))
        sigma = gen.generate(eps, kappa=1e-5, xi=0.1, lambda_=0.2, zeta=0.7, sigma0=0.02)
        np.testing.assert_array_equal(sigma[:, 0], 0.02)

    def test_matches_manual_recursion(self, gen):
        """Each column follows the variance update"""
        eps = np.array([[0.5, -1.0, 2.0, 0.1]])
        kappa, xi, lam, zeta, s0 = 1e-4, 0.1, 0.3, 0.8, 0.01
        sigma = gen.generate(eps, kappa, xi, lam, zeta, s0)
        expected = [s0]
        for t in range(1, 4):
            prev = expected[-1] ** 2
            expected.append(np.sqrt(kappa + xi * prev * (eps[0, t - 1] - lam) ** 2 + zeta * prev))
        np.testing.assert_allclose(sigma[0], expected, rtol=1e-14)

    def test_volatility_is_predictable(self, gen):
        """sigma_t does not depend on eps_t or later"""
        rng = np.random.default_rng(3)
        eps = rng.standard_normal((3, 6))
        base = gen.generate(eps, 1e-5, 0.1, 0.0, 0.8, 0.01)
        eps2 = eps.copy()
        eps2[:, 4:] = rng.standard_normal((3, 2))
        moved = gen.generate(eps2, 1e-5, 0.1, 0.0, 0.8, 0.01)
        np.testing.assert_array_equal(base[:, :5], moved[:, :5])
        assert not np.array_equal(base[:, 5], moved[:, 5])

    def test_paths_are_independent(self, gen):
        """Changing one path leaves the others untouched"""
        rng = np.random.default_rng(4)
        eps = rng.standard_normal((4, 5))
        base = gen.generate(eps, 1e-5, 0.1, 0.0, 0.8, 0.01)
        eps[2] *= 3.0
        moved = gen.generate(eps, 1e-5, 0.1, 0.0, 0.8, 0.01)
        np.testing.assert_array_equal(base[[0, 1, 3]], moved[[0, 1, 3]])

    def test_zero_sigma0_starts_at_kappa(self, gen):
        """With sigma0 = 0 the first update is sqrt(kappa)"""
        sigma = gen.generate(np.zeros((2, 3)), 4e-4, 0.1, 0.0, 0.5, 0.0)
        np.testing.assert_allclose(sigma[:, 1], 0.02)

    def test_per_step_parameters(self, gen):
        """Time-varying kappa is read at the updated step"""
        eps = np.zeros((1, 3))
        kappa = np.array([9.9, 1e-4, 4e-4])
        sigma = gen.generate(eps, kappa, 0.0, 0.0, 0.0, 0.01)
        np.testing.assert_allclose(sigma[0], [0.01, 0.01, 0.02])

    def test_single_column(self, gen):
        """A one-column matrix is just sigma0"""
        sigma = gen.generate(np.zeros((3, 1)), 1e-5, 0.1, 0.0, 0.8, 0.05)
        np.testing.assert_array_equal(sigma, 0.05)


class TestVolatilityValidation:
    """Test argument checks"""

    def test_rejects_1d_input(self, gen):
        with pytest.raises(ParameterValidationError):
            gen.generate(np.zeros(5), 1e-5, 0.1, 0.0, 0.8, 0.01)

    @pytest.mark.parametrize(
        "kappa,xi,zeta,sigma0",
        [(0.0, 0.1, 0.8, 0.01), (1e-5, -0.1, 0.8, 0.01), (1e-5, 0.3, 0.7, 0.01), (1e-5, 0.1, 0.8, -0.01)],
    )
    def test_rejects_invalid_garch(self, gen, kappa, xi, zeta, sigma0):
        with pytest.raises(ParameterValidationError):
            gen.generate(np.zeros((2, 3)), kappa, xi, 0.0, zeta, sigma0)

    def test_rejects_wrong_length_schedule(self, gen):
        with pytest.raises(ParameterValidationError):
            gen.generate(np.zeros((2, 3)), np.array([1e-5, 1e-5]), 0.1, 0.0, 0.8, 0.01)
