"""Coordinate transformations between geodetic (LLH), ECEF and local NED frames.

This module converts the calibration site between its two supported
representations:
- ECEF (Earth-Centered Earth-Fixed) Cartesian coordinates
- Geodetic latitude, longitude and height of a local NED frame origin

and provides the rotation between ECEF and the local North-East-Down frame,
which is needed to express the gravity vector where the accelerometer sits.

WGS84 ellipsoid parameters:
- Semi-major axis (a): 6378137.0 m
- Flattening (f): 1/298.257223563
- Semi-minor axis (b): 6356752.314245 m
- First eccentricity squared (e²): 0.00669437999014
"""

import numpy as np
from numpy.typing import NDArray

# WGS84 ellipsoid parameters
WGS84_A = 6378137.0  # Semi-major axis (m)
WGS84_F = 1.0 / 298.257223563  # Flattening
WGS84_B = WGS84_A * (1.0 - WGS84_F)  # Semi-minor axis (m)
WGS84_E2 = 1.0 - (WGS84_B / WGS84_A) ** 2  # First eccentricity squared


def llh_to_ecef(
    lat: float,
    lon: float,
    height: float,
) -> NDArray[np.float64]:
    """Convert geodetic coordinates (LLH) to ECEF Cartesian coordinates.

    Args:
        lat: Latitude in radians (positive north).
        lon: Longitude in radians (positive east).
        height: Height above WGS84 ellipsoid in meters.

    Returns:
        ECEF coordinates as numpy array [x, y, z] in meters.

    Example:
        >>> import numpy as np
        >>> xyz = llh_to_ecef(np.deg2rad(41.38), np.deg2rad(2.17), 120.0)
        >>> print(f"ECEF: {xyz}")
    """
    # Radius of curvature in the prime vertical
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat**2)

    x = (N + height) * cos_lat * np.cos(lon)
    y = (N + height) * cos_lat * np.sin(lon)
    z = (N * (1.0 - WGS84_E2) + height) * sin_lat

    return np.array([x, y, z], dtype=np.float64)


def ecef_to_llh(
    x: float,
    y: float,
    z: float,
    tol: float = 1e-12,
    max_iter: int = 10,
) -> NDArray[np.float64]:
    """Convert ECEF Cartesian coordinates to geodetic coordinates (LLH).

    Uses the iterative latitude/height refinement, which converges to
    sub-millimeter accuracy in a handful of iterations for points near the
    Earth's surface.

    Args:
        x: ECEF x-coordinate in meters.
        y: ECEF y-coordinate in meters.
        z: ECEF z-coordinate in meters.
        tol: Convergence tolerance on latitude (radians).
        max_iter: Maximum number of iterations.

    Returns:
        Geodetic coordinates as numpy array [lat, lon, height] where
        lat and lon are in radians, height is in meters.
    """
    lon = np.arctan2(y, x)

    # Distance from z-axis
    p = np.sqrt(x**2 + y**2)

    # Pole: latitude is ±90° and longitude is arbitrary
    if p < 1e-10:
        lat = np.copysign(np.pi / 2.0, z)
        height = abs(z) - WGS84_B
        return np.array([lat, lon, height], dtype=np.float64)

    # Initial latitude estimate (assumes height = 0)
    lat = np.arctan2(z, p * (1.0 - WGS84_E2))

    for _ in range(max_iter):
        sin_lat = np.sin(lat)
        N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat**2)

        height = p / np.cos(lat) - N

        lat_new = np.arctan2(z, p * (1.0 - WGS84_E2 * N / (N + height)))

        if abs(lat_new - lat) < tol:
            lat = lat_new
            break

        lat = lat_new

    sin_lat = np.sin(lat)
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat**2)
    height = p / np.cos(lat) - N

    return np.array([lat, lon, height], dtype=np.float64)


def ecef_to_ned_rotation(lat: float, lon: float) -> NDArray[np.float64]:
    """Rotation matrix C_e^n from ECEF to the local NED frame.

    Args:
        lat: Latitude of the NED origin in radians.
        lon: Longitude of the NED origin in radians.

    Returns:
        3x3 rotation matrix R such that v_ned = R @ v_ecef.
    """
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)

    return np.array(
        [
            [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
            [-sin_lon, cos_lon, 0.0],
            [-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat],
        ],
        dtype=np.float64,
    )


def ecef_to_ned_vector(
    v_ecef: NDArray[np.float64],
    lat: float,
    lon: float,
) -> NDArray[np.float64]:
    """Resolve a free vector (not a point) from ECEF axes into NED axes.

    Args:
        v_ecef: Vector expressed in ECEF axes, shape (3,).
        lat: Latitude of the NED origin in radians.
        lon: Longitude of the NED origin in radians.

    Returns:
        The same vector expressed in NED axes, shape (3,).
    """
    v_ecef = np.asarray(v_ecef, dtype=np.float64)
    if v_ecef.shape != (3,):
        raise ValueError(f"v_ecef must have shape (3,), got {v_ecef.shape}")

    return ecef_to_ned_rotation(lat, lon) @ v_ecef
