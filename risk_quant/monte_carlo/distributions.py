"""
PURPOSE: Probabilistic distribution samplers for risk magnitude uncertainty.

RESPONSIBILITIES:
- Map a three-point estimate (P10, P50, P90) onto distribution parameters
- Sample magnitudes from uniform, triangular, Beta-PERT and normal distributions
- Single responsibility: only sampling, no occurrence gating or aggregation

The three points are used as shape anchors, not as percentiles to be fitted:
uniform and triangular and PERT treat P10/P90 as the bounds and P50 as the
mode; normal treats P50 as the mean and P10/P90 as mean -/+ 1.2816 sigma.
All samplers return magnitudes; the caller applies the threat/opportunity sign.
"""

import numpy as np
from scipy.stats import triang

from risk_quant.monte_carlo.config import NORMAL_P10_P90_Z_SPAN, PERT_LAMBDA
from risk_quant.monte_carlo.errors import NumericInstabilityError, UnsupportedDistributionError
from risk_quant.monte_carlo.models import DistributionModel, RiskSpec

__all__ = [
    "DistributionSampler",
    "sample_uniform",
    "sample_triangular",
    "sample_pert",
    "sample_normal",
    "pert_shape_params",
    "normal_std_dev",
]


def _check_bounds(min_val, mode_val, max_val):
    if not min_val <= mode_val <= max_val:
        raise ValueError(
            f"Invalid three-point params: min={min_val}, mode={mode_val}, max={max_val}"
        )


def pert_shape_params(min_val, mode_val, max_val, lambda_param=PERT_LAMBDA):
    """
    Beta shape parameters for a Beta-PERT on [min, max] with the given mode.

    alpha = 1 + lambda * (mode - min) / (max - min)
    beta  = 1 + lambda * (max - mode) / (max - min)
    """
    _check_bounds(min_val, mode_val, max_val)
    span = max_val - min_val
    if span == 0:
        raise ValueError("PERT shape is undefined for a zero-width range")
    alpha = 1.0 + lambda_param * (mode_val - min_val) / span
    beta = 1.0 + lambda_param * (max_val - mode_val) / span
    return alpha, beta


def normal_std_dev(p10, p90):
    """Standard deviation that places P10 and P90 at z = -/+1.2816."""
    if p90 < p10:
        raise ValueError(f"p90 must be >= p10, got p10={p10}, p90={p90}")
    return (p90 - p10) / NORMAL_P10_P90_Z_SPAN


def sample_uniform(min_val, max_val, rng, size=1):
    """min + u * (max - min), u ~ U(0, 1). P50 plays no part."""
    if max_val < min_val:
        raise ValueError(f"max must be >= min, got min={min_val}, max={max_val}")
    if min_val == max_val:
        return np.full(size, float(min_val))
    u = rng.random(size)
    return min_val + u * (max_val - min_val)


def sample_triangular(min_val, mode_val, max_val, rng, size=1):
    """
    Sample from a triangular distribution by inverse CDF.

    Args:
        min_val: Left bound (P10)
        mode_val: Peak (P50)
        max_val: Right bound (P90)
        rng: numpy Generator supplying the uniforms
        size: Number of samples to draw

    Returns:
        numpy array of sampled magnitudes
    """
    _check_bounds(min_val, mode_val, max_val)
    if min_val == max_val:
        return np.full(size, float(mode_val))
    # Scipy triangular requires normalized parameters: c = (mode - a) / (b - a)
    c = (mode_val - min_val) / (max_val - min_val)
    u = rng.random(size)
    return triang.ppf(u, c, loc=min_val, scale=max_val - min_val)


def sample_pert(min_val, mode_val, max_val, rng, size=1, lambda_param=PERT_LAMBDA):
    """
    Sample from a Beta-PERT distribution scaled to [min, max].

    Mean is (min + lambda * mode + max) / (lambda + 2); lambda defaults to 4.
    """
    _check_bounds(min_val, mode_val, max_val)
    if min_val == max_val:
        return np.full(size, float(mode_val))
    alpha, beta = pert_shape_params(min_val, mode_val, max_val, lambda_param)
    if not (np.isfinite(alpha) and np.isfinite(beta)) or alpha < 1.0 or beta < 1.0:
        raise NumericInstabilityError("pert", f"invalid Beta shape alpha={alpha}, beta={beta}")
    return min_val + (max_val - min_val) * rng.beta(alpha, beta, size=size)


def sample_normal(p10, p50, p90, rng, size=1):
    """Sample from Normal(mean=P50, sigma=(P90 - P10) / 2.5631). Tails are not clipped."""
    sigma = normal_std_dev(p10, p90)
    if sigma == 0:
        return np.full(size, float(p50))
    return p50 + sigma * rng.standard_normal(size)


class DistributionSampler:
    """Draws risk magnitudes according to each risk's assigned distribution model."""

    @staticmethod
    def sample(spec: RiskSpec, rng: np.random.Generator) -> float:
        """Draw one magnitude for ``spec``."""
        return float(DistributionSampler.sample_many(spec, rng, 1)[0])

    @staticmethod
    def sample_many(spec: RiskSpec, rng: np.random.Generator, size: int) -> np.ndarray:
        """
        Draw ``size`` magnitudes for ``spec``.

        A degenerate estimate (p10 == p50 == p90) returns that constant for
        every model without consuming a random draw.

        Raises:
            UnsupportedDistributionError: if the model is not one of the known ones.
            NumericInstabilityError: if any sample is NaN or infinite.
        """
        model = spec.distribution_model
        if model is DistributionModel.UNIFORM:
            samples = sample_uniform(spec.p10, spec.p90, rng, size)
        elif model is DistributionModel.TRIANGULAR:
            samples = sample_triangular(spec.p10, spec.p50, spec.p90, rng, size)
        elif model is DistributionModel.PERT:
            samples = sample_pert(spec.p10, spec.p50, spec.p90, rng, size)
        elif model is DistributionModel.NORMAL:
            samples = sample_normal(spec.p10, spec.p50, spec.p90, rng, size)
        else:
            raise UnsupportedDistributionError(spec.id, model)

        if not np.all(np.isfinite(samples)):
            raise NumericInstabilityError("sampling", f"non-finite {model.value} sample", risk_id=spec.id)
        return samples
