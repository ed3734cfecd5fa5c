"""
Unit tests for risk event sampling.

STRATEGY:
    For Bernoulli gating and signed contributions:
    1. Test pure Bernoulli: frequency of occurrence matches probability
    2. Test the short-circuits: p = 0 and p = 1 consume no random draw
    3. Test combined: zero contribution when the risk does not occur
    4. Test sign convention for opportunities
    5. Test that probability does not perturb the magnitude stream
"""

import unittest

import numpy as np

from risk_quant.monte_carlo.models import DistributionModel, RiskKind, RiskSpec
from risk_quant.monte_carlo.risk_events import OccurrenceGate, sample_risk_contributions


def make_spec(probability, kind=RiskKind.THREAT, model=DistributionModel.TRIANGULAR):
    return RiskSpec(
        id="R1",
        kind=kind,
        p10=100.0,
        p50=200.0,
        p90=500.0,
        probability=probability,
        distribution_model=model,
    )


class TestOccurrenceGate(unittest.TestCase):
    """Test Bernoulli occurrence gating."""

    def test_zero_probability_never_occurs_without_draw(self):
        rng = np.random.default_rng(1)
        state = rng.bit_generator.state
        self.assertFalse(OccurrenceGate.occurs(0.0, rng))
        self.assertFalse(OccurrenceGate.occurs_many(0.0, rng, 100).any())
        self.assertEqual(rng.bit_generator.state, state)

    def test_certain_probability_always_occurs_without_draw(self):
        rng = np.random.default_rng(2)
        state = rng.bit_generator.state
        self.assertTrue(OccurrenceGate.occurs(1.0, rng))
        self.assertTrue(OccurrenceGate.occurs_many(1.0, rng, 100).all())
        self.assertEqual(rng.bit_generator.state, state)

    def test_single_draw_consumes_stream(self):
        rng = np.random.default_rng(3)
        state = rng.bit_generator.state
        OccurrenceGate.occurs(0.5, rng)
        self.assertNotEqual(rng.bit_generator.state, state)

    def test_probability_accuracy(self):
        """Frequency of occurrence should match probability."""
        occurred = OccurrenceGate.occurs_many(0.3, np.random.default_rng(4), 20000)
        self.assertEqual(occurred.dtype, bool)
        self.assertAlmostEqual(occurred.mean(), 0.3, delta=0.02)

    def test_invalid_probability_raises_error(self):
        with self.assertRaises(ValueError):
            OccurrenceGate.occurs(1.5, np.random.default_rng(0))
        with self.assertRaises(ValueError):
            OccurrenceGate.occurs_many(-0.1, np.random.default_rng(0), 10)


class TestRiskContributions(unittest.TestCase):
    """Test combined occurrence + magnitude sampling."""

    def test_zero_where_not_occurred(self):
        contributions = sample_risk_contributions(
            make_spec(0.4), np.random.default_rng(5), np.random.default_rng(6), 5000
        )
        nonzero = contributions[contributions != 0]
        self.assertAlmostEqual(nonzero.size / 5000, 0.4, delta=0.03)
        self.assertTrue(np.all(nonzero >= 100.0))
        self.assertTrue(np.all(nonzero <= 500.0))

    def test_opportunity_contributes_negative(self):
        contributions = sample_risk_contributions(
            make_spec(1.0, kind=RiskKind.OPPORTUNITY), np.random.default_rng(7), np.random.default_rng(8), 1000
        )
        self.assertTrue(np.all(contributions <= -100.0))
        self.assertTrue(np.all(contributions >= -500.0))

    def test_zero_probability_draws_nothing(self):
        occurrence_rng = np.random.default_rng(9)
        magnitude_rng = np.random.default_rng(10)
        occurrence_state = occurrence_rng.bit_generator.state
        magnitude_state = magnitude_rng.bit_generator.state
        contributions = sample_risk_contributions(make_spec(0.0), occurrence_rng, magnitude_rng, 100)
        np.testing.assert_array_equal(contributions, np.zeros(100))
        self.assertEqual(occurrence_rng.bit_generator.state, occurrence_state)
        self.assertEqual(magnitude_rng.bit_generator.state, magnitude_state)

    def test_probability_does_not_perturb_magnitudes(self):
        """Where the risk occurs under both probabilities, the magnitude is identical."""
        low = sample_risk_contributions(make_spec(0.3), np.random.default_rng(11), np.random.default_rng(12), 2000)
        high = sample_risk_contributions(make_spec(0.8), np.random.default_rng(11), np.random.default_rng(12), 2000)
        certain = sample_risk_contributions(make_spec(1.0), np.random.default_rng(11), np.random.default_rng(12), 2000)
        both = (low != 0) & (high != 0)
        self.assertGreater(both.sum(), 0)
        np.testing.assert_array_equal(low[both], high[both])
        np.testing.assert_array_equal(high[high != 0], certain[high != 0])


if __name__ == "__main__":
    unittest.main()
