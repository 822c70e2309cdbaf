"""Unit tests for hypothesis scorers and inlier classification."""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from imucal.calibration.scorers import (
    Consensus,
    EarlyExitInlierCountScorer,
    InlierCountScorer,
    MedianScorer,
    TruncatedLossScorer,
)


class FixedErrorModel:
    """Returns preset residual magnitudes and counts evaluated measurements."""

    def __init__(self, errors):
        self._errors = np.asarray(errors, dtype=float)
        self.evaluated = 0

    def errors(self, ma, indices=None):
        if indices is None:
            indices = np.arange(len(self._errors))
        self.evaluated += len(indices)
        return self._errors[indices]


MA = np.zeros((3, 3))


class TestInlierCountScorer(unittest.TestCase):
    """RANSAC scoring."""

    def test_counts_inliers(self):
        model = FixedErrorModel([0.001, 0.2, 0.005, 0.01, 3.0])
        consensus = InlierCountScorer(0.01).score(model, MA)

        self.assertEqual(consensus.fitness, 3.0)
        self.assertEqual(consensus.num_inliers, 3)
        np.testing.assert_array_equal(consensus.inlier_mask, [True, False, True, True, False])
        self.assertAlmostEqual(consensus.total_inlier_error, 0.016)

    def test_higher_count_wins(self):
        scorer = InlierCountScorer(0.1)
        a = scorer.score(FixedErrorModel([0.0, 0.0, 1.0]), MA)
        b = scorer.score(FixedErrorModel([0.0, 0.0, 0.0]), MA)
        self.assertTrue(scorer.is_better(b, a))
        self.assertFalse(scorer.is_better(a, b))
        self.assertTrue(scorer.is_better(a, None))

    def test_tie_broken_by_lower_residual(self):
        scorer = InlierCountScorer(0.1)
        a = scorer.score(FixedErrorModel([0.05, 0.05, 1.0]), MA)
        b = scorer.score(FixedErrorModel([0.01, 0.02, 1.0]), MA)
        self.assertTrue(scorer.is_better(b, a))
        self.assertFalse(scorer.is_better(a, b))


class TestEarlyExitInlierCountScorer(unittest.TestCase):
    """PROSAC scoring with early rejection."""

    def setUp(self):
        self.errors = np.array([0.0, 0.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0])
        self.ranking = np.arange(10)

    def test_full_evaluation_matches_ransac(self):
        scorer = EarlyExitInlierCountScorer(0.1, self.ranking, block_size=3)
        consensus = scorer.score(FixedErrorModel(self.errors), MA)
        reference = InlierCountScorer(0.1).score(FixedErrorModel(self.errors), MA)

        self.assertEqual(consensus.fitness, reference.fitness)
        assert_allclose(consensus.errors, self.errors)
        np.testing.assert_array_equal(consensus.inlier_mask, reference.inlier_mask)

    def test_hopeless_hypothesis_rejected_early(self):
        best = Consensus(
            fitness=9.0,
            inlier_mask=np.ones(10, dtype=bool),
            errors=np.zeros(10),
            total_inlier_error=0.0,
        )
        model = FixedErrorModel(self.errors)
        scorer = EarlyExitInlierCountScorer(0.1, self.ranking, block_size=3)

        self.assertIsNone(scorer.score(model, MA, best))
        self.assertLess(model.evaluated, 10)

    def test_evaluates_in_ranking_order(self):
        ranking = np.array([9, 8, 7, 6, 5, 4, 3, 2, 1, 0])
        best = Consensus(9.0, np.ones(10, dtype=bool), np.zeros(10), 0.0)
        # Inliers are last in ranking order, so rejection happens at the first block
        model = FixedErrorModel(self.errors)
        scorer = EarlyExitInlierCountScorer(0.1, ranking, block_size=2)

        self.assertIsNone(scorer.score(model, MA, best))
        self.assertEqual(model.evaluated, 2)


class TestTruncatedLossScorer(unittest.TestCase):
    """MSAC scoring."""

    def test_truncated_sum(self):
        consensus = TruncatedLossScorer(0.1).score(FixedErrorModel([0.05, 0.2, 0.0]), MA)
        self.assertAlmostEqual(consensus.fitness, 0.05**2 + 0.1**2)
        self.assertEqual(consensus.num_inliers, 2)

    def test_lower_loss_wins(self):
        scorer = TruncatedLossScorer(0.1)
        a = scorer.score(FixedErrorModel([0.05, 0.05]), MA)
        b = scorer.score(FixedErrorModel([0.01, 0.05]), MA)
        self.assertTrue(scorer.is_better(b, a))
        self.assertFalse(scorer.is_better(a, b))


class TestMedianScorer(unittest.TestCase):
    """LMedS scoring."""

    def test_median_of_squares(self):
        errors = [0.1, 0.2, 0.3, 10.0, 20.0]
        consensus = MedianScorer(3, 0.0).score(FixedErrorModel(errors), MA)
        self.assertAlmostEqual(consensus.fitness, 0.09)

    def test_robust_inlier_bound(self):
        rng = np.random.default_rng(0)
        errors = np.abs(rng.normal(0.0, 0.01, 100))
        errors[:20] = 5.0
        scorer = MedianScorer(4, 0.0)

        consensus = scorer.score(FixedErrorModel(errors), MA)

        self.assertFalse(np.any(consensus.inlier_mask[:20]))
        self.assertGreater(consensus.num_inliers, 70)

    def test_stop_threshold_floors_bound(self):
        """Noise-free data keeps every exact measurement as inlier."""
        errors = np.array([0.0, 1e-14, 2e-14, 1e-3, 1.0])
        consensus = MedianScorer(3, 1e-4).score(FixedErrorModel(errors), MA)

        np.testing.assert_array_equal(consensus.inlier_mask, [True, True, True, True, False])
        self.assertAlmostEqual(MedianScorer(3, 1e-4).inlier_bound(0.0, 5), 1e-2)

    def test_lower_median_wins(self):
        scorer = MedianScorer(3, 0.0)
        a = scorer.score(FixedErrorModel([0.1, 0.2, 0.3]), MA)
        b = scorer.score(FixedErrorModel([0.1, 0.1, 0.3]), MA)
        self.assertTrue(scorer.is_better(b, a))
        self.assertTrue(scorer.is_better(a, None))


if __name__ == "__main__":
    unittest.main()
