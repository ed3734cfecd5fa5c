"""
PURPOSE: Simulation configuration and tuning parameters for the risk exposure engine.

RESPONSIBILITIES:
- Define simulation hyperparameters (iteration bounds, batch size, worker count)
- Fixed percentile table and histogram bucket targets
- Distribution parameterization constants (normal z-span, PERT lambda)
- Single responsibility: configuration only, no simulation logic
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from scipy.stats import norm

# Simulation Parameters
DEFAULT_ITERATIONS = 10000  # Standard Monte Carlo sample size
MAX_ITERATIONS = 1_000_000
DEFAULT_TARGET_PERCENTILE = 80.0  # P80 is the usual contingency target
BATCH_SIZE = 4096  # Trials per batch; cancellation is checked between batches
MAX_WORKERS = 4

# Percentile Outputs
PERCENTILE_TABLE = (5, 10, 20, 25, 30, 40, 50, 60, 70, 75, 80, 85, 90, 95, 99)

# Histogram
HISTOGRAM_BUCKETS = 30
MIN_HISTOGRAM_BUCKETS = 20
MAX_HISTOGRAM_BUCKETS = 50
NICE_STEPS = (1.0, 2.0, 2.5, 5.0, 10.0)

# Distribution parameterization
# P10 and P90 sit at z = -1.2816 and z = +1.2816, so they span 2.5631 sigma.
NORMAL_P10_P90_Z_SPAN = float(2.0 * norm.ppf(0.90))
PERT_LAMBDA = 4.0

# Sensitivity Analysis (Tornado Chart)
TOP_N_DRIVERS = None  # None reports every risk

_ENV_MAX_WORKERS = "RISK_QUANT_MAX_WORKERS"
_ENV_BATCH_SIZE = "RISK_QUANT_BATCH_SIZE"
_ENV_HISTOGRAM_BUCKETS = "RISK_QUANT_HISTOGRAM_BUCKETS"


@dataclass(frozen=True)
class EngineSettings:
    max_workers: int = MAX_WORKERS
    batch_size: int = BATCH_SIZE
    histogram_buckets: int = HISTOGRAM_BUCKETS


def _read_positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def get_engine_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Return engine settings, with environment overrides applied."""
    if environ is None:
        environ = os.environ
    histogram_buckets = _read_positive_int(environ, _ENV_HISTOGRAM_BUCKETS, HISTOGRAM_BUCKETS)
    if not MIN_HISTOGRAM_BUCKETS <= histogram_buckets <= MAX_HISTOGRAM_BUCKETS:
        raise ValueError(
            f"{_ENV_HISTOGRAM_BUCKETS} must be between {MIN_HISTOGRAM_BUCKETS} and "
            f"{MAX_HISTOGRAM_BUCKETS}, got {histogram_buckets}"
        )
    return EngineSettings(
        max_workers=_read_positive_int(environ, _ENV_MAX_WORKERS, MAX_WORKERS),
        batch_size=_read_positive_int(environ, _ENV_BATCH_SIZE, BATCH_SIZE),
        histogram_buckets=histogram_buckets,
    )
