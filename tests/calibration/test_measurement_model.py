"""
Unit tests for the accelerometer measurement model.

Tests cover:
    - Frame form: prediction, residuals, minimal-subset hypotheses
    - Gravity-norm form: selection, hypotheses, invariance of the norm
    - Analytic Jacobians against finite differences
    - Degenerate subsets (SINGULAR_MODEL)
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from imucal.calibration.errors import SingularModelError
from imucal.calibration.measurement_model import (
    MeasurementModel,
    ModelForm,
    free_parameter_mask,
    ma_to_params,
    minimum_measurements,
    params_to_ma,
    predict_specific_force,
)
from imucal.sensors import AccelMeasurement, NedPosition
from imucal.sim import DEFAULT_MA, generate_accel_measurements

SITE = NedPosition.from_degrees(41.3825, 2.1769, 120.0)

COMMON_AXIS_MA = np.triu(DEFAULT_MA)


def numerical_jacobian(h, x, step=1e-7):
    """Central-difference Jacobian of h at x."""
    columns = []
    for i in range(len(x)):
        dx = np.zeros_like(x)
        dx[i] = step
        columns.append((h(x + dx) - h(x - dx)) / (2.0 * step))
    return np.column_stack(columns)


class TestParameterPacking(unittest.TestCase):
    """Packing of the free entries of Ma."""

    def test_general_mask(self):
        self.assertEqual(int(free_parameter_mask(False).sum()), 9)

    def test_common_axis_mask(self):
        mask = free_parameter_mask(True)
        self.assertEqual(int(mask.sum()), 6)
        self.assertFalse(mask[1, 0] or mask[2, 0] or mask[2, 1])

    def test_round_trip_drops_lower_entries(self):
        ma = np.arange(9.0).reshape(3, 3)
        params = ma_to_params(ma, True)
        assert_allclose(params, [0.0, 1.0, 2.0, 4.0, 5.0, 8.0])
        assert_allclose(params_to_ma(params, True), np.triu(ma))
        assert_allclose(params_to_ma(ma_to_params(ma, False), False), ma)

    def test_minimum_measurements(self):
        self.assertEqual(minimum_measurements(False, True), 4)
        self.assertEqual(minimum_measurements(True, True), 3)
        self.assertEqual(minimum_measurements(False, False), 10)
        self.assertEqual(minimum_measurements(True, False), 7)


class TestFrameForm(unittest.TestCase):
    """Measurement model when every orientation is known."""

    def setUp(self):
        self.data = generate_accel_measurements(SITE, 30, seed=11)
        self.model = MeasurementModel(self.data.measurements, SITE, bias=self.data.bias)

    def test_form_and_minimum(self):
        self.assertEqual(self.model.form, ModelForm.FRAME)
        self.assertEqual(self.model.minimum_subset_size, 4)
        self.assertEqual(self.model.num_parameters, 9)

    def test_errors_vanish_at_true_matrix(self):
        assert_allclose(self.model.errors(self.data.true_ma), 0.0, atol=1e-12)

    def test_predict_matches_measurements(self):
        for k in (0, 7, 29):
            assert_allclose(
                self.model.predict(self.data.true_ma, k),
                self.data.measurements[k].specific_force,
                atol=1e-12,
            )

    def test_predict_specific_force(self):
        meas = self.data.measurements[3]
        predicted = predict_specific_force(
            self.data.true_ma, self.data.bias, SITE, meas.orientation
        )
        assert_allclose(predicted, meas.specific_force, atol=1e-12)

    def test_residual_is_measured_minus_predicted(self):
        ma = np.full((3, 3), 1e-3)
        meas = self.data.measurements[5]
        residual = self.model.residual(meas, ma)

        self.assertEqual(residual.shape, (3,))
        assert_allclose(residual, meas.specific_force - self.model.predict(ma, 5), atol=1e-12)
        self.assertAlmostEqual(np.linalg.norm(residual), self.model.errors(ma, [5])[0])

    def test_minimal_subset_hypothesis(self):
        ma = self.model.hypothesize(np.array([0, 4, 9, 17]))
        assert_allclose(ma, self.data.true_ma, atol=1e-9)

    def test_common_axis_hypothesis(self):
        data = generate_accel_measurements(SITE, 20, ma=COMMON_AXIS_MA, seed=12)
        model = MeasurementModel(data.measurements, SITE, bias=data.bias, common_axis_used=True)

        self.assertEqual(model.minimum_subset_size, 3)
        ma = model.hypothesize(np.array([2, 8, 15]))

        assert_allclose(ma, COMMON_AXIS_MA, atol=1e-9)
        self.assertTrue(np.all(np.tril(ma, -1) == 0.0))

    def test_same_orientation_is_singular(self):
        """Four readings at one attitude give parallel gravity directions."""
        meas = self.data.measurements[0]
        repeated = [meas] * 4
        model = MeasurementModel(repeated, SITE, bias=self.data.bias)

        with self.assertRaises(SingularModelError):
            model.hypothesize(np.arange(4))

    def test_subset_below_minimum(self):
        with self.assertRaises(SingularModelError):
            self.model.hypothesize(np.array([0, 1, 2]))

    def test_jacobian_matches_finite_differences(self):
        problem = self.model.problem(np.arange(6))
        x = ma_to_params(self.data.true_ma, False) + 1e-3
        assert_allclose(
            problem.jacobian(x), numerical_jacobian(problem.h, x), rtol=1e-6, atol=1e-6
        )
        self.assertEqual(problem.y.shape, (18,))
        self.assertEqual(problem.weights.shape, (18,))

    def test_missing_position(self):
        with self.assertRaises(ValueError):
            MeasurementModel(self.data.measurements, None)


class TestGravityNormForm(unittest.TestCase):
    """Measurement model when orientations are unknown."""

    def setUp(self):
        self.data = generate_accel_measurements(
            SITE, 30, ma=COMMON_AXIS_MA, include_orientation=False, seed=21
        )
        self.model = MeasurementModel(
            self.data.measurements, SITE, bias=self.data.bias, common_axis_used=True
        )

    def test_form_and_minimum(self):
        self.assertEqual(self.model.form, ModelForm.GRAVITY_NORM)
        self.assertEqual(self.model.minimum_subset_size, 7)

    def test_one_missing_orientation_selects_norm_form(self):
        oriented = generate_accel_measurements(SITE, 12, seed=22).measurements
        mixed = list(oriented) + [AccelMeasurement(oriented[0].specific_force)]
        model = MeasurementModel(mixed, SITE)

        self.assertEqual(model.form, ModelForm.GRAVITY_NORM)
        self.assertEqual(model.minimum_subset_size, 10)

    def test_errors_vanish_at_true_matrix(self):
        assert_allclose(self.model.errors(COMMON_AXIS_MA), 0.0, atol=1e-12)

    def test_residual_is_scalar(self):
        residual = self.model.residual(self.data.measurements[0], np.zeros((3, 3)))
        self.assertEqual(residual.shape, (1,))

    def test_common_axis_hypothesis(self):
        ma = self.model.hypothesize(np.array([0, 3, 6, 10, 14, 19, 25]))
        assert_allclose(ma, COMMON_AXIS_MA, atol=1e-8)

    def test_general_hypothesis_matches_norms(self):
        """Without the common axis Ma is only determined up to a rotation."""
        data = generate_accel_measurements(SITE, 30, include_orientation=False, seed=23)
        model = MeasurementModel(data.measurements, SITE, bias=data.bias)

        ma = model.hypothesize(np.arange(10))
        assert_allclose(model.errors(ma), 0.0, atol=1e-8)

        # Same metric (I + Ma)^T (I + Ma) as the true matrix
        scaling = np.eye(3) + ma
        true_scaling = np.eye(3) + data.true_ma
        assert_allclose(scaling.T @ scaling, true_scaling.T @ true_scaling, atol=1e-7)

    def test_jacobian_matches_finite_differences(self):
        problem = self.model.problem(np.arange(8))
        x = ma_to_params(COMMON_AXIS_MA, True) + 2e-3
        assert_allclose(
            problem.jacobian(x), numerical_jacobian(problem.h, x), rtol=1e-5, atol=1e-6
        )

    def test_general_jacobian_matches_finite_differences(self):
        model = MeasurementModel(self.data.measurements, SITE, bias=self.data.bias)
        problem = model.problem(np.arange(12))
        x = ma_to_params(DEFAULT_MA, False)
        assert_allclose(
            problem.jacobian(x), numerical_jacobian(problem.h, x), rtol=1e-5, atol=1e-6
        )

    def test_singular_scaling(self):
        with self.assertRaises(SingularModelError):
            self.model.errors(-np.eye(3))


if __name__ == "__main__":
    unittest.main()
