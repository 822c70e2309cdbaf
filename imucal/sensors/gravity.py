"""
Local gravity at the calibration site.

The calibrator needs the specific force a static accelerometer should sense
at a known position. This module computes the gravity vector (gravitational
attraction plus the centrifugal term of Earth rotation) in ECEF, resolves it
into the local NED frame and returns its norm.

Model:
    Gravitation uses the WGS-84 ellipsoid with the J2 zonal harmonic:

        γ = -μ/r³ · [(1 + 1.5 J2 (a/r)² (1 - 5 z²/r²)) x,
                     (1 + 1.5 J2 (a/r)² (1 - 5 z²/r²)) y,
                     (1 + 1.5 J2 (a/r)² (3 - 5 z²/r²)) z]

    and gravity adds the centripetal acceleration of the rotating frame:

        g = γ + ω_ie² · [x, y, 0]

    At the surface this gives |g| ≈ 9.780 m/s² at the equator and
    ≈ 9.832 m/s² at the poles.

Design Philosophy:
    - Single source of truth: every expected specific force in the
      calibration package routes through ned_gravity()
    - Positions are accepted in either representation and converted once
"""

import numpy as np

from imucal.coords.transforms import WGS84_A, ecef_to_ned_vector
from imucal.sensors.types import Position

# WGS-84 Earth gravitational constant (m³/s²)
EARTH_GRAVITATIONAL_CONSTANT = 3.986004418e14

# WGS-84 second gravitational constant (J2)
EARTH_SECOND_GRAVITATIONAL_CONSTANT = 1.082627e-3

# Earth rotation rate (rad/s)
EARTH_ROTATION_RATE = 7.292115e-5


def ecef_gravity(x: float, y: float, z: float) -> np.ndarray:
    """
    Compute the gravity vector at an ECEF point, resolved in ECEF axes.

    Args:
        x: ECEF x-coordinate in meters.
        y: ECEF y-coordinate in meters.
        z: ECEF z-coordinate in meters.

    Returns:
        Gravity vector [gx, gy, gz] in m/s² (ECEF axes).

    Raises:
        ValueError: If the point is too close to the Earth's center for the
            model to be meaningful.

    Example:
        >>> from imucal.coords import llh_to_ecef
        >>> import numpy as np
        >>> g = ecef_gravity(*llh_to_ecef(np.deg2rad(45.0), 0.0, 0.0))
        >>> print(f"{np.linalg.norm(g):.4f}")  # ~9.806
    """
    r = np.sqrt(x * x + y * y + z * z)
    if r < 1.0e3:
        raise ValueError(f"Position is too close to Earth's center (r = {r} m)")

    z_scale = 5.0 * (z / r) ** 2
    j2_term = 1.5 * EARTH_SECOND_GRAVITATIONAL_CONSTANT * (WGS84_A / r) ** 2
    factor = -EARTH_GRAVITATIONAL_CONSTANT / r**3

    gamma = factor * np.array(
        [
            (1.0 + j2_term * (1.0 - z_scale)) * x,
            (1.0 + j2_term * (1.0 - z_scale)) * y,
            (1.0 + j2_term * (3.0 - z_scale)) * z,
        ],
        dtype=np.float64,
    )

    omega2 = EARTH_ROTATION_RATE**2
    return gamma + omega2 * np.array([x, y, 0.0], dtype=np.float64)


def ned_gravity(position: Position) -> np.ndarray:
    """
    Gravity vector at a position, resolved in the local NED frame.

    The down component dominates (≈ +9.8 m/s²); a small north component
    remains because the ellipsoidal normal and the gravity direction differ.

    Args:
        position: Calibration site (EcefPosition or NedPosition).

    Returns:
        Gravity vector [g_n, g_e, g_d] in m/s².
    """
    ecef = position.to_ecef()
    ned = position.to_ned()
    g_ecef = ecef_gravity(ecef.x, ecef.y, ecef.z)
    return ecef_to_ned_vector(g_ecef, ned.latitude, ned.longitude)


def gravity_norm(position: Position) -> float:
    """Magnitude of gravity (m/s²) at a position."""
    ecef = position.to_ecef()
    return float(np.linalg.norm(ecef_gravity(ecef.x, ecef.y, ecef.z)))


def expected_specific_force(position: Position, orientation: np.ndarray) -> np.ndarray:
    """
    Specific force a perfect static accelerometer senses at a position.

    Implements f_b = C_b^n^T @ (-g_n): at rest the accelerometer measures the
    reaction to gravity, resolved in the body frame.

    Args:
        position: Calibration site.
        orientation: Body-to-NED rotation matrix C_b^n, shape (3, 3).

    Returns:
        Expected specific force in body frame, shape (3,). Units: m/s².
    """
    orientation = np.asarray(orientation, dtype=np.float64)
    if orientation.shape != (3, 3):
        raise ValueError(f"orientation must have shape (3, 3), got {orientation.shape}")
    return orientation.T @ (-ned_gravity(position))
