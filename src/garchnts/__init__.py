"""garchnts package public API."""

import logging

from .backends import ParallelPathDriver
from .config import StudyConfig, load_config
from .core import GarchNTSPricer, PricingResult
from .distributions import InnovationLaw, StdNTS
from .exceptions import (
    GarchNTSError,
    NumericalInstabilityError,
    ParameterValidationError,
    PersistenceError,
    WorkerFailure,
)
from .parameters import ContractTerms, ModelParameters
from .paths import RiskNeutralPathSimulator, SimulatedPaths
from .pricing import OptionPricer, OptionQuote
from .sampler import ParameterSampler
from .stats import autocrit, mean_ci
from .study import BatchStudyDriver, CsvChunkSink, StudyReport, load_results, run_study
from .volatility import VolatilityPathGenerator

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = [
    "GarchNTSPricer",
    "PricingResult",
    "ModelParameters",
    "ContractTerms",
    "StdNTS",
    "InnovationLaw",
    "VolatilityPathGenerator",
    "RiskNeutralPathSimulator",
    "SimulatedPaths",
    "ParallelPathDriver",
    "OptionPricer",
    "OptionQuote",
    "ParameterSampler",
    "BatchStudyDriver",
    "CsvChunkSink",
    "StudyReport",
    "load_results",
    "run_study",
    "StudyConfig",
    "load_config",
    "GarchNTSError",
    "ParameterValidationError",
    "NumericalInstabilityError",
    "WorkerFailure",
    "PersistenceError",
    "autocrit",
    "mean_ci",
]

__version__ = "0.1.0"
