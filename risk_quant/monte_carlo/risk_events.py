"""
Risk event sampling for Monte Carlo simulation.

PURPOSE:
    Model each register entry as a Bernoulli trial with a magnitude
    distribution. A risk occurs with its probability and, when it occurs,
    contributes a magnitude drawn from its distribution model.

RESPONSIBILITIES:
    - Bernoulli trials (did the risk occur in this trial?)
    - Combine occurrence and magnitude into a signed per-trial contribution
    - NO aggregation across risks, NO statistics

Occurrence and magnitude draws come from two separate generators. Probability
0 and 1 short-circuit without touching the occurrence generator, and the
magnitude generator is drawn for every trial whatever the probability, so
changing a probability never shifts the magnitudes a risk produces.
"""

import numpy as np

from risk_quant.monte_carlo.distributions import DistributionSampler
from risk_quant.monte_carlo.models import RiskSpec

__all__ = ["OccurrenceGate", "sample_risk_contributions"]


def _check_probability(probability):
    if not 0 <= probability <= 1:
        raise ValueError(f"probability must be in [0, 1], got {probability}")


class OccurrenceGate:
    """Bernoulli gate deciding whether a risk materializes in a trial."""

    @staticmethod
    def occurs(probability: float, rng: np.random.Generator) -> bool:
        """Single Bernoulli draw; p = 0 and p = 1 consume no draw."""
        _check_probability(probability)
        if probability == 0:
            return False
        if probability == 1:
            return True
        return bool(rng.random() < probability)

    @staticmethod
    def occurs_many(probability: float, rng: np.random.Generator, size: int) -> np.ndarray:
        """Vectorized form of occurs(): one draw per trial, same short-circuits."""
        _check_probability(probability)
        if probability == 0:
            return np.zeros(size, dtype=bool)
        if probability == 1:
            return np.ones(size, dtype=bool)
        return rng.random(size) < probability


def sample_risk_contributions(
    spec: RiskSpec,
    occurrence_rng: np.random.Generator,
    magnitude_rng: np.random.Generator,
    size: int,
) -> np.ndarray:
    """
    Signed contribution of one risk to each of ``size`` trials.

    Zero where the risk did not occur; otherwise the sampled magnitude, negated
    for opportunities. A zero-probability risk draws nothing at all.
    """
    if spec.probability == 0:
        return np.zeros(size)
    occurred = OccurrenceGate.occurs_many(spec.probability, occurrence_rng, size)
    magnitudes = DistributionSampler.sample_many(spec, magnitude_rng, size)
    return np.where(occurred, spec.sign * magnitudes, 0.0)
