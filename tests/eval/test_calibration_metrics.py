"""Unit tests for calibration evaluation metrics and plots."""

import tempfile
import unittest

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from numpy.testing import assert_allclose  # noqa: E402

from imucal.eval import (  # noqa: E402
    compute_inlier_detection_stats,
    compute_matrix_error_stats,
    compute_matrix_errors,
    compute_rmse,
    plot_ma_errors,
    plot_residuals,
    save_figure,
)


class TestMatrixErrors(unittest.TestCase):
    """Element errors of an estimated Ma."""

    def test_difference(self):
        true_ma = np.zeros((3, 3))
        estimated = np.diag([1e-4, -2e-4, 3e-4])
        assert_allclose(compute_matrix_errors(true_ma, estimated), estimated)

    def test_shape_check(self):
        with self.assertRaises(ValueError):
            compute_matrix_errors(np.zeros((3, 3)), np.zeros(9))

    def test_rmse(self):
        self.assertAlmostEqual(compute_rmse(np.array([3.0, 4.0])), np.sqrt(12.5))
        assert_allclose(compute_rmse(np.array([[3.0, 4.0], [0.0, 0.0]]), axis=1), [np.sqrt(12.5), 0.0])

    def test_stats(self):
        estimated = np.zeros((3, 3))
        estimated[0, 0] = 3e-4
        estimated[1, 2] = -4e-4

        stats = compute_matrix_error_stats(np.zeros((3, 3)), estimated)

        self.assertAlmostEqual(stats["max_abs"], 4e-4)
        self.assertAlmostEqual(stats["scale_rmse"], np.sqrt(9e-8 / 3))
        self.assertAlmostEqual(stats["coupling_rmse"], np.sqrt(16e-8 / 6))
        self.assertAlmostEqual(stats["rmse"], np.sqrt(25e-8 / 9))


class TestInlierDetection(unittest.TestCase):
    """Precision and recall of the consensus set."""

    def test_perfect_detection(self):
        outliers = np.array([False, True, False, True])
        stats = compute_inlier_detection_stats(outliers, ~outliers)

        self.assertEqual(stats["precision"], 1.0)
        self.assertEqual(stats["recall"], 1.0)
        self.assertEqual(stats["false_inliers"], 0)
        self.assertEqual(stats["missed_inliers"], 0)

    def test_mixed_detection(self):
        outliers = np.array([False, False, False, True])
        kept = np.array([True, False, True, True])
        stats = compute_inlier_detection_stats(outliers, kept)

        self.assertAlmostEqual(stats["precision"], 2.0 / 3.0)
        self.assertAlmostEqual(stats["recall"], 2.0 / 3.0)
        self.assertEqual(stats["false_inliers"], 1)
        self.assertEqual(stats["missed_inliers"], 1)

    def test_nothing_kept(self):
        stats = compute_inlier_detection_stats(np.zeros(3, dtype=bool), np.zeros(3, dtype=bool))
        self.assertEqual(stats["precision"], 0.0)
        self.assertEqual(stats["recall"], 0.0)

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            compute_inlier_detection_stats(np.zeros(3, dtype=bool), np.zeros(4, dtype=bool))


class TestPlots(unittest.TestCase):
    """Figures are created and saved."""

    def tearDown(self):
        plt.close("all")

    def test_residual_plot(self):
        residuals = np.array([1e-4, 2e-4, 0.5, 0.0])
        mask = np.array([True, True, False, True])
        fig = plot_residuals(residuals, mask, threshold=1e-2)
        self.assertEqual(len(fig.axes), 1)

    def test_error_plot_and_save(self):
        errors = {"RANSAC": np.full((3, 3), 1e-5), "LMedS": np.full((3, 3), -2e-5)}
        fig = plot_ma_errors(errors)

        with tempfile.TemporaryDirectory() as tmp:
            paths = save_figure(fig, tmp, "ma_errors", formats=("png",))
            self.assertEqual(len(paths), 1)
            self.assertTrue(paths[0].exists())


if __name__ == "__main__":
    unittest.main()
