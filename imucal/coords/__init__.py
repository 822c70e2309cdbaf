"""Coordinate systems and transformations for the calibration site.

This module provides the conversions the calibrator needs:
- LLH (Latitude, Longitude, Height) geodetic coordinates
- ECEF (Earth-Centered Earth-Fixed) Cartesian coordinates
- NED (North-East-Down) local tangent plane axes
- Body-to-NED attitude from Euler angles
"""

from imucal.coords.rotations import (
    euler_to_rotation_matrix,
    is_rotation_matrix,
)
from imucal.coords.transforms import (
    ecef_to_llh,
    ecef_to_ned_rotation,
    ecef_to_ned_vector,
    llh_to_ecef,
)

__all__ = [
    # Transforms
    "llh_to_ecef",
    "ecef_to_llh",
    "ecef_to_ned_rotation",
    "ecef_to_ned_vector",
    # Rotations
    "euler_to_rotation_matrix",
    "is_rotation_matrix",
]
