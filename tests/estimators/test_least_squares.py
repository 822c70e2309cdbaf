"""
Unit tests for weighted linear least squares.

Tests cover:
    - Exact recovery for consistent systems
    - Weighting of less accurate observations
    - Rank deficiency detection (collinear rows)
    - Input validation
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from imucal.estimators.least_squares import weighted_least_squares


class TestWeightedLeastSquares(unittest.TestCase):
    """Test weighted least squares on small systems."""

    def test_exact_system(self):
        """Test recovery of x from noise-free observations."""
        rng = np.random.default_rng(0)
        A = rng.normal(size=(6, 3))
        x_true = np.array([1.0, -2.0, 0.5])

        x_hat, P = weighted_least_squares(A, A @ x_true)

        assert_allclose(x_hat, x_true, atol=1e-12)
        assert_allclose(P, np.linalg.inv(A.T @ A), rtol=1e-10)

    def test_weights_favor_accurate_observations(self):
        """Test that a large sigma reduces the pull of a bad observation."""
        A = np.array([[1.0], [1.0], [1.0]])
        b = np.array([1.0, 1.0, 4.0])

        x_uniform, _ = weighted_least_squares(A, b)
        x_weighted, _ = weighted_least_squares(A, b, sigma=np.array([0.1, 0.1, 10.0]))

        self.assertAlmostEqual(x_uniform[0], 2.0)
        self.assertLess(abs(x_weighted[0] - 1.0), 1e-3)

    def test_covariance_scales_with_sigma(self):
        """Test P = (A'WA)^-1 with W = 1/σ²."""
        A = np.eye(2)
        _, P = weighted_least_squares(A, np.zeros(2), sigma=np.array([2.0, 3.0]))
        assert_allclose(P, np.diag([4.0, 9.0]))

    def test_no_covariance(self):
        _, P = weighted_least_squares(np.eye(2), np.ones(2), return_covariance=False)
        self.assertIsNone(P)

    def test_collinear_rows_rank_deficient(self):
        """Test that parallel rows raise LinAlgError."""
        A = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [-1.0, -2.0, -3.0]])
        with self.assertRaises(np.linalg.LinAlgError):
            weighted_least_squares(A, np.ones(3))

    def test_underdetermined(self):
        with self.assertRaises(np.linalg.LinAlgError):
            weighted_least_squares(np.ones((2, 3)), np.ones(2))

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            weighted_least_squares(np.ones(3), np.ones(3))
        with self.assertRaises(ValueError):
            weighted_least_squares(np.eye(3), np.ones(2))
        with self.assertRaises(ValueError):
            weighted_least_squares(np.eye(3), np.ones(3), sigma=np.array([1.0, 0.0, 1.0]))


if __name__ == "__main__":
    unittest.main()
