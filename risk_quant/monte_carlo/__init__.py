"""
Monte Carlo engine for quantitative risk analysis of a project risk register.

PURPOSE:
    Turn a register of threats and opportunities, each with a three-point
    estimate (P10/P50/P90) and an occurrence probability, into a probabilistic
    exposure distribution with percentile bands and a tornado ranking.

RESPONSIBILITIES:
    - Validate and canonicalize register entries
    - Sample magnitudes (uniform, triangular, Beta-PERT, normal)
    - Gate risks by Bernoulli occurrence
    - Run reproducible, batch-parallel trials
    - Summarize totals and rank risks by leave-one-out variance

SRP/DRY CHECK:
    Each submodule has a single responsibility:
    - normalizer.py: Input validation and sign convention only
    - distributions.py: Sampling from magnitude distributions only
    - risk_events.py: Bernoulli gating + signed contribution only
    - simulation.py: Trial execution only
    - outputs.py: Percentiles, moments and histogram only
    - sensitivity.py: Sensitivity analysis only
    - runner.py: Wiring the above into one operation
"""

from .distributions import DistributionSampler
from .errors import (
    NumericInstabilityError,
    RiskEngineError,
    SimulationCancelledError,
    UnsupportedDistributionError,
    ValidationError,
    ValidationIssue,
)
from .models import (
    DistributionModel,
    HistogramBucket,
    PercentileRow,
    RiskKind,
    RiskSpec,
    SensitivityItem,
    SimulationMetadata,
    SimulationRequest,
    SimulationResult,
)
from .normalizer import RiskInputNormalizer, build_request, normalize_risks
from .outputs import StatisticsAggregator, SummaryStatistics
from .risk_events import OccurrenceGate
from .runner import run_simulation, run_simulation_async, simulate, simulate_payload
from .sensitivity import SensitivityAnalyzer
from .simulation import SimulationEngine, SimulationOutput

__version__ = "0.1.0"

__all__ = [
    "DistributionModel",
    "DistributionSampler",
    "HistogramBucket",
    "NumericInstabilityError",
    "OccurrenceGate",
    "PercentileRow",
    "RiskEngineError",
    "RiskInputNormalizer",
    "RiskKind",
    "RiskSpec",
    "SensitivityAnalyzer",
    "SensitivityItem",
    "SimulationCancelledError",
    "SimulationEngine",
    "SimulationMetadata",
    "SimulationOutput",
    "SimulationRequest",
    "SimulationResult",
    "StatisticsAggregator",
    "SummaryStatistics",
    "UnsupportedDistributionError",
    "ValidationError",
    "ValidationIssue",
    "build_request",
    "normalize_risks",
    "run_simulation",
    "run_simulation_async",
    "simulate",
    "simulate_payload",
]
