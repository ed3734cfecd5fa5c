"""
Unit tests for distribution samplers.

STRATEGY:
    For each distribution (uniform, triangular, PERT, normal):
    1. Sample many values
    2. Verify bounds where the distribution is bounded
    3. Verify statistics: mean (and spread for normal) match the parameterization
    4. Verify the degenerate single-point estimate is returned exactly, without draws
    5. Test reproducibility and error handling
"""

import unittest

import numpy as np

from risk_quant.monte_carlo.distributions import (
    DistributionSampler,
    normal_std_dev,
    pert_shape_params,
    sample_normal,
    sample_pert,
    sample_triangular,
    sample_uniform,
)
from risk_quant.monte_carlo.errors import UnsupportedDistributionError
from risk_quant.monte_carlo.models import DistributionModel, RiskKind, RiskSpec


def make_spec(model, p10=10.0, p50=20.0, p90=50.0, kind=RiskKind.THREAT):
    return RiskSpec(
        id="R1",
        kind=kind,
        p10=p10,
        p50=p50,
        p90=p90,
        probability=1.0,
        distribution_model=model,
    )


class TestUniform(unittest.TestCase):
    """Test uniform distribution sampling."""

    def test_bounds(self):
        """All samples must be within [min, max]."""
        samples = sample_uniform(5.0, 15.0, np.random.default_rng(1), size=5000)
        self.assertTrue(np.all(samples >= 5.0))
        self.assertTrue(np.all(samples <= 15.0))

    def test_mean_is_midpoint(self):
        samples = sample_uniform(0.0, 10.0, np.random.default_rng(2), size=20000)
        self.assertAlmostEqual(np.mean(samples), 5.0, delta=0.1)

    def test_ignores_p50(self):
        """Uniform sampling only uses P10 and P90."""
        a = DistributionSampler.sample_many(make_spec(DistributionModel.UNIFORM, p50=11.0), np.random.default_rng(3), 100)
        b = DistributionSampler.sample_many(make_spec(DistributionModel.UNIFORM, p50=49.0), np.random.default_rng(3), 100)
        np.testing.assert_array_equal(a, b)


class TestTriangular(unittest.TestCase):
    """Test triangular distribution sampling."""

    def test_multiple_samples(self):
        """Multiple samples should return array."""
        samples = sample_triangular(1.0, 2.0, 3.0, np.random.default_rng(4), size=1000)
        self.assertIsInstance(samples, np.ndarray)
        self.assertEqual(samples.shape, (1000,))

    def test_bounds(self):
        """All samples must be within [min, max]."""
        samples = sample_triangular(0.0, 5.0, 10.0, np.random.default_rng(5), size=5000)
        self.assertTrue(np.all(samples >= 0.0))
        self.assertTrue(np.all(samples <= 10.0))

    def test_mean_is_reasonable(self):
        """Mean should be close to (min + mode + max) / 3."""
        samples = sample_triangular(10.0, 20.0, 50.0, np.random.default_rng(6), size=20000)
        self.assertAlmostEqual(np.mean(samples), (10.0 + 20.0 + 50.0) / 3, delta=0.5)

    def test_mode_location(self):
        """A mode near the right bound pushes the median right."""
        left = sample_triangular(0.0, 0.5, 10.0, np.random.default_rng(7), size=10000)
        right = sample_triangular(0.0, 9.5, 10.0, np.random.default_rng(7), size=10000)
        self.assertLess(np.median(left), np.median(right))

    def test_mode_on_bound(self):
        """Mode equal to min is a valid right-angled triangle."""
        samples = sample_triangular(0.0, 0.0, 10.0, np.random.default_rng(8), size=5000)
        self.assertTrue(np.all(samples >= 0.0))
        self.assertAlmostEqual(np.mean(samples), 10.0 / 3, delta=0.2)

    def test_invalid_params_raises_error(self):
        with self.assertRaises(ValueError):
            sample_triangular(3.0, 2.0, 4.0, np.random.default_rng(0))
        with self.assertRaises(ValueError):
            sample_triangular(1.0, 4.0, 3.0, np.random.default_rng(0))


class TestPERT(unittest.TestCase):
    """Test Beta-PERT distribution sampling."""

    def test_shape_params(self):
        """alpha = 1 + 4(mode-min)/(max-min), beta = 1 + 4(max-mode)/(max-min)."""
        alpha, beta = pert_shape_params(10.0, 20.0, 50.0)
        self.assertAlmostEqual(alpha, 2.0)
        self.assertAlmostEqual(beta, 4.0)

    def test_shape_params_zero_width(self):
        with self.assertRaises(ValueError):
            pert_shape_params(5.0, 5.0, 5.0)

    def test_bounds(self):
        samples = sample_pert(0.0, 5.0, 10.0, np.random.default_rng(9), size=5000)
        self.assertTrue(np.all(samples >= 0.0))
        self.assertTrue(np.all(samples <= 10.0))

    def test_mean_close_to_pert_formula(self):
        """Mean should match PERT formula: (min + 4*likely + max) / 6."""
        samples = sample_pert(1.0, 3.0, 6.0, np.random.default_rng(10), size=20000)
        self.assertAlmostEqual(np.mean(samples), (1.0 + 4 * 3.0 + 6.0) / 6, delta=0.05)

    def test_lambda_param_effect(self):
        """Larger lambda should concentrate around likely value."""
        low = sample_pert(0.0, 5.0, 10.0, np.random.default_rng(11), size=5000, lambda_param=1.0)
        high = sample_pert(0.0, 5.0, 10.0, np.random.default_rng(11), size=5000, lambda_param=20.0)
        self.assertLess(np.std(high), np.std(low))


class TestNormal(unittest.TestCase):
    """Test normal distribution sampling."""

    def test_std_dev_from_p10_p90(self):
        self.assertAlmostEqual(normal_std_dev(0.0, 2.5631), 1.0, places=4)

    def test_mean_and_spread(self):
        samples = sample_normal(0.0, 5000.0, 15000.0, np.random.default_rng(12), size=50000)
        self.assertAlmostEqual(np.mean(samples), 5000.0, delta=100.0)
        self.assertAlmostEqual(np.std(samples), 15000.0 / 2.5631, delta=100.0)

    def test_p10_p90_land_on_anchors_when_symmetric(self):
        samples = sample_normal(0.0, 10.0, 20.0, np.random.default_rng(13), size=100000)
        self.assertAlmostEqual(np.percentile(samples, 10), 0.0, delta=0.2)
        self.assertAlmostEqual(np.percentile(samples, 90), 20.0, delta=0.2)

    def test_invalid_range(self):
        with self.assertRaises(ValueError):
            normal_std_dev(10.0, 5.0)


class TestDistributionSampler(unittest.TestCase):
    """Test model dispatch and the degenerate estimate."""

    def test_single_sample_is_float(self):
        value = DistributionSampler.sample(make_spec(DistributionModel.TRIANGULAR), np.random.default_rng(14))
        self.assertIsInstance(value, float)
        self.assertGreaterEqual(value, 10.0)
        self.assertLessEqual(value, 50.0)

    def test_degenerate_estimate_is_constant_for_every_model(self):
        for model in DistributionModel:
            with self.subTest(model=model):
                rng = np.random.default_rng(15)
                state_before = rng.bit_generator.state
                spec = make_spec(model, p10=1000.0, p50=1000.0, p90=1000.0)
                samples = DistributionSampler.sample_many(spec, rng, 50)
                np.testing.assert_array_equal(samples, np.full(50, 1000.0))
                self.assertEqual(rng.bit_generator.state, state_before)

    def test_reproducibility_with_seed(self):
        for model in DistributionModel:
            with self.subTest(model=model):
                spec = make_spec(model)
                a = DistributionSampler.sample_many(spec, np.random.default_rng(42), 100)
                b = DistributionSampler.sample_many(spec, np.random.default_rng(42), 100)
                np.testing.assert_array_equal(a, b)

    def test_returns_magnitudes_for_opportunities(self):
        """Sign is applied by the caller, not the sampler."""
        spec = make_spec(DistributionModel.UNIFORM, kind=RiskKind.OPPORTUNITY)
        samples = DistributionSampler.sample_many(spec, np.random.default_rng(16), 100)
        self.assertTrue(np.all(samples >= 10.0))

    def test_unknown_model_raises(self):
        spec = RiskSpec(
            id="bad",
            kind=RiskKind.THREAT,
            p10=1.0,
            p50=2.0,
            p90=3.0,
            probability=1.0,
            distribution_model="weibull",
        )
        with self.assertRaises(UnsupportedDistributionError) as ctx:
            DistributionSampler.sample_many(spec, np.random.default_rng(0), 10)
        self.assertEqual(ctx.exception.risk_id, "bad")


if __name__ == "__main__":
    unittest.main()
