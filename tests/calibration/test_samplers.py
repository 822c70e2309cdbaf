"""Unit tests for the uniform and progressive subset samplers."""

import unittest

import numpy as np

from imucal.calibration.samplers import ProgressiveSampler, UniformSampler


class TestUniformSampler(unittest.TestCase):
    """Uniform sampling without replacement."""

    def test_distinct_indices_in_range(self):
        sampler = UniformSampler(20, 4, np.random.default_rng(0))
        for _ in range(100):
            subset = sampler.sample()
            self.assertEqual(len(subset), 4)
            self.assertEqual(len(set(subset.tolist())), 4)
            self.assertTrue(np.all((subset >= 0) & (subset < 20)))

    def test_deterministic_given_seed(self):
        a = UniformSampler(30, 5, np.random.default_rng(7))
        b = UniformSampler(30, 5, np.random.default_rng(7))
        for _ in range(10):
            np.testing.assert_array_equal(a.sample(), b.sample())

    def test_subset_larger_than_population(self):
        with self.assertRaises(ValueError):
            UniformSampler(3, 4, np.random.default_rng(0))


class TestProgressiveSampler(unittest.TestCase):
    """PROSAC sampling from a growing prefix of the quality ranking."""

    def setUp(self):
        rng = np.random.default_rng(1)
        self.scores = rng.uniform(size=40)
        self.ranking = np.argsort(-self.scores)

    def test_ranking_descending_and_stable(self):
        sampler = ProgressiveSampler(np.array([0.5, 0.9, 0.5, 0.1, 0.9]), 2, 100, np.random.default_rng(0))
        np.testing.assert_array_equal(sampler.ranking, [1, 4, 0, 2, 3])

    def test_subsets_come_from_current_prefix(self):
        sampler = ProgressiveSampler(self.scores, 4, 500, np.random.default_rng(2))
        previous_prefix = sampler.prefix_size
        for _ in range(200):
            subset = sampler.sample()
            prefix = set(sampler.ranking[: sampler.prefix_size].tolist())

            self.assertEqual(len(set(subset.tolist())), 4)
            self.assertTrue(set(subset.tolist()) <= prefix)
            self.assertGreaterEqual(sampler.prefix_size, previous_prefix)
            previous_prefix = sampler.prefix_size

    def test_first_subsets_use_best_measurements(self):
        sampler = ProgressiveSampler(self.scores, 4, 5000, np.random.default_rng(3))
        subset = sampler.sample()
        best = set(self.ranking[:5].tolist())
        self.assertTrue(set(subset.tolist()) <= best)

    def test_whole_population_reachable_by_cap(self):
        sampler = ProgressiveSampler(self.scores, 4, 50, np.random.default_rng(4))
        for _ in range(50):
            sampler.sample()
        self.assertEqual(sampler.prefix_size, 40)

    def test_deterministic_given_seed(self):
        a = ProgressiveSampler(self.scores, 3, 100, np.random.default_rng(5))
        b = ProgressiveSampler(self.scores, 3, 100, np.random.default_rng(5))
        for _ in range(30):
            np.testing.assert_array_equal(a.sample(), b.sample())

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            ProgressiveSampler(np.ones((2, 2)), 2, 10, np.random.default_rng(0))
        with self.assertRaises(ValueError):
            ProgressiveSampler(np.ones(3), 4, 10, np.random.default_rng(0))


if __name__ == "__main__":
    unittest.main()
