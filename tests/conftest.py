import multiprocessing as mp

import numpy as np
import pytest

from garchnts import ContractTerms, ModelParameters, ParallelPathDriver, RiskNeutralPathSimulator, StudyConfig


@pytest.fixture(autouse=True)
def _stable_seed():
    # Keep global state stable for any code that still touches np.random.*
    np.random.seed(42)

@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set

@pytest.fixture
def params():
    """Symmetric stdNTS parameters with a daily-scale GARCH."""
    return ModelParameters(
        alpha=1.2,
        theta=1.0,
        kappa=1e-5,
        xi=0.1,
        lambda_=0.3,
        zeta=0.2,
        sigma0=0.01,
    )


@pytest.fixture
def skew_params():
    """Standardized stdNTS parameters with negative skew."""
    return ModelParameters.from_skew(
        alpha=1.4,
        theta=1.5,
        B=-0.4,
        kappa=2e-5,
        xi=0.05,
        lambda_=0.1,
        zeta=0.6,
        sigma0=0.012,
    )


@pytest.fixture
def contract():
    """At-the-money contract with a 30 step maturity."""
    return ContractTerms(moneyness=1.0, maturity=30 / 250)


@pytest.fixture
def seq_simulator():
    """Simulator with fixed 64-path blocks on the sequential backend."""
    driver = ParallelPathDriver(backend="sequential", block_size=64)
    return RiskNeutralPathSimulator(driver=driver, block_paths=64)


@pytest.fixture
def small_config(tmp_path):
    """Fast, seeded configuration writing into a temporary directory."""
    return StudyConfig(
        n_sim=5,
        n_paths=400,
        backend="sequential",
        chunk_size=2,
        output_dir=str(tmp_path / "results"),
        seed=123,
    )
