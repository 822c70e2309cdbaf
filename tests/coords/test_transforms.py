"""Unit tests for coordinate transformations (LLH, ECEF, NED).

Test cases include:
- Known reference points (equator, poles)
- Round-trip transformations (LLH -> ECEF -> LLH)
- ECEF to NED rotation properties
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from imucal.coords.transforms import (
    WGS84_A,
    WGS84_B,
    ecef_to_llh,
    ecef_to_ned_rotation,
    ecef_to_ned_vector,
    llh_to_ecef,
)


class TestLLHtoECEF(unittest.TestCase):
    """Test cases for LLH to ECEF transformation."""

    def test_equator_prime_meridian(self) -> None:
        """Test conversion at equator and prime meridian (0°N, 0°E)."""
        xyz = llh_to_ecef(0.0, 0.0, 0.0)
        assert_allclose(xyz, [WGS84_A, 0.0, 0.0], atol=1e-6)

    def test_north_pole(self) -> None:
        """Test conversion at the North Pole: z equals the semi-minor axis."""
        xyz = llh_to_ecef(np.pi / 2, 0.0, 0.0)
        assert_allclose(xyz, [0.0, 0.0, WGS84_B], atol=1e-6)

    def test_height_adds_along_normal(self) -> None:
        """Test that height at the equator moves the point radially."""
        xyz = llh_to_ecef(0.0, np.pi / 2, 100.0)
        assert_allclose(xyz, [0.0, WGS84_A + 100.0, 0.0], atol=1e-6)


class TestECEFtoLLH(unittest.TestCase):
    """Test cases for ECEF to LLH transformation."""

    def test_round_trip(self) -> None:
        """Test LLH -> ECEF -> LLH round trip at several sites."""
        sites = [
            (np.deg2rad(22.3193), np.deg2rad(114.1694), 50.0),
            (np.deg2rad(-33.8688), np.deg2rad(151.2093), 10.0),
            (np.deg2rad(64.1466), np.deg2rad(-21.9426), 5000.0),
            (np.deg2rad(-89.0), np.deg2rad(0.5), -20.0),
        ]
        for lat, lon, height in sites:
            with self.subTest(lat=lat, lon=lon):
                llh = ecef_to_llh(*llh_to_ecef(lat, lon, height))
                assert_allclose(llh[:2], [lat, lon], atol=1e-11)
                self.assertAlmostEqual(llh[2], height, places=5)

    def test_pole(self) -> None:
        """Test that points on the z-axis map to ±90° latitude."""
        llh = ecef_to_llh(0.0, 0.0, -WGS84_B - 10.0)
        self.assertAlmostEqual(llh[0], -np.pi / 2)
        self.assertAlmostEqual(llh[2], 10.0, places=6)


class TestECEFtoNED(unittest.TestCase):
    """Test cases for the ECEF to NED rotation."""

    def test_rotation_is_orthonormal(self) -> None:
        """Test that C_e^n is a proper rotation."""
        R = ecef_to_ned_rotation(np.deg2rad(37.0), np.deg2rad(-122.0))
        assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(R), 1.0, places=12)

    def test_down_points_to_earth_center_at_equator(self) -> None:
        """Test that at (0°, 0°) the ECEF x-axis is 'up' (negative down)."""
        v_ned = ecef_to_ned_vector(np.array([1.0, 0.0, 0.0]), 0.0, 0.0)
        assert_allclose(v_ned, [0.0, 0.0, -1.0], atol=1e-12)

    def test_north_at_equator_is_ecef_z(self) -> None:
        """Test that at the equator north is the ECEF z-axis."""
        v_ned = ecef_to_ned_vector(np.array([0.0, 0.0, 1.0]), 0.0, np.deg2rad(45.0))
        assert_allclose(v_ned, [1.0, 0.0, 0.0], atol=1e-12)

    def test_invalid_vector_shape(self) -> None:
        """Test that a non-3-vector is rejected."""
        with self.assertRaises(ValueError):
            ecef_to_ned_vector(np.zeros(2), 0.0, 0.0)


if __name__ == "__main__":
    unittest.main()
