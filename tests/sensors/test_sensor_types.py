"""
Unit tests for measurement and position data structures.

Tests validation, immutability and ECEF/NED conversions.
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from imucal.coords import euler_to_rotation_matrix, llh_to_ecef
from imucal.sensors.types import AccelMeasurement, EcefPosition, NedPosition


class TestAccelMeasurement(unittest.TestCase):
    """Test suite for AccelMeasurement."""

    def test_valid_measurement(self):
        C = euler_to_rotation_matrix(0.1, 0.2, 0.3)
        meas = AccelMeasurement(
            specific_force=[0.1, -0.2, -9.8], specific_force_std=1e-3, orientation=C
        )

        assert_allclose(meas.specific_force, [0.1, -0.2, -9.8])
        self.assertEqual(meas.specific_force_std, 1e-3)
        self.assertTrue(meas.has_orientation)
        assert_allclose(meas.orientation, C)

    def test_orientation_optional(self):
        meas = AccelMeasurement(np.array([0.0, 0.0, -9.8]))
        self.assertFalse(meas.has_orientation)
        self.assertEqual(meas.specific_force_std, 1.0)

    def test_arrays_are_read_only_copies(self):
        """Test that changing the caller's array does not change the measurement."""
        force = np.array([0.0, 0.0, -9.8])
        meas = AccelMeasurement(force)
        force[2] = 0.0

        self.assertEqual(meas.specific_force[2], -9.8)
        with self.assertRaises(ValueError):
            meas.specific_force[0] = 1.0

    def test_invalid_shape(self):
        with self.assertRaises(ValueError):
            AccelMeasurement(np.zeros(2))

    def test_non_finite(self):
        with self.assertRaises(ValueError):
            AccelMeasurement(np.array([np.nan, 0.0, 0.0]))

    def test_non_positive_std(self):
        with self.assertRaises(ValueError):
            AccelMeasurement(np.zeros(3), specific_force_std=0.0)
        with self.assertRaises(ValueError):
            AccelMeasurement(np.zeros(3), specific_force_std=-1.0)

    def test_invalid_orientation(self):
        with self.assertRaises(ValueError):
            AccelMeasurement(np.zeros(3), orientation=2.0 * np.eye(3))
        with self.assertRaises(ValueError):
            AccelMeasurement(np.zeros(3), orientation=np.eye(2))


class TestPositions(unittest.TestCase):
    """Test suite for EcefPosition and NedPosition."""

    def setUp(self):
        self.ned = NedPosition.from_degrees(22.3193, 114.1694, 50.0)
        xyz = llh_to_ecef(self.ned.latitude, self.ned.longitude, self.ned.height)
        self.ecef = EcefPosition.from_array(xyz)

    def test_ned_to_ecef(self):
        self.assertTrue(self.ned.to_ecef().equals(self.ecef, threshold=1e-6))

    def test_ecef_to_ned(self):
        ned = self.ecef.to_ned()
        self.assertAlmostEqual(ned.latitude, self.ned.latitude, places=10)
        self.assertAlmostEqual(ned.longitude, self.ned.longitude, places=10)
        self.assertAlmostEqual(ned.height, self.ned.height, places=5)

    def test_cross_representation_equality(self):
        """Test equals() accepts the other representation."""
        self.assertTrue(self.ecef.equals(self.ned, threshold=1e-6))
        self.assertTrue(self.ned.equals(self.ecef, threshold=1e-6))

    def test_not_equal_beyond_threshold(self):
        moved = EcefPosition(self.ecef.x + 1.0, self.ecef.y, self.ecef.z)
        self.assertFalse(self.ecef.equals(moved, threshold=0.5))
        self.assertTrue(self.ecef.equals(moved, threshold=1.5))
        self.assertFalse(self.ecef.equals(None))

    def test_identity_conversions(self):
        self.assertIs(self.ecef.to_ecef(), self.ecef)
        self.assertIs(self.ned.to_ned(), self.ned)

    def test_invalid_latitude(self):
        with self.assertRaises(ValueError):
            NedPosition(2.0, 0.0, 0.0)

    def test_non_finite(self):
        with self.assertRaises(ValueError):
            EcefPosition(np.inf, 0.0, 0.0)
        with self.assertRaises(ValueError):
            NedPosition(0.0, np.nan)

    def test_from_array_shape(self):
        with self.assertRaises(ValueError):
            EcefPosition.from_array(np.zeros(2))


if __name__ == "__main__":
    unittest.main()
