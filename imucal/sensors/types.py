"""
Measurement and position data structures for accelerometer calibration.

This module defines the immutable inputs of a calibration run:
    - AccelMeasurement: one static specific-force sample with its noise level
      and, optionally, the body attitude at which it was taken
    - EcefPosition: calibration site as ECEF Cartesian coordinates
    - NedPosition: calibration site as geodetic coordinates of the local NED
      frame origin (latitude, longitude, height)

Design principles:
    - Dataclasses are frozen; arrays are copied and made read-only so a
      measurement cannot change while a calibrator holds a reference to it
    - Positions convert to each other on demand and compare with a tolerance,
      since a round trip through the geodetic iteration is not bit-exact
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from imucal.coords.rotations import is_rotation_matrix
from imucal.coords.transforms import ecef_to_llh, llh_to_ecef


def _frozen_array(values, shape, name: str) -> np.ndarray:
    array = np.array(values, dtype=np.float64)
    if array.shape != shape:
        raise ValueError(f"{name} must have shape {shape}, got {array.shape}")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must contain finite values")
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class AccelMeasurement:
    """Static accelerometer sample used for calibration.

    The sensor is assumed to be at rest, so the true specific force is the
    reaction to local gravity: f_true = C_b^n^T @ (-g_n).

    Attributes:
        specific_force: Measured specific force in body frame, shape (3,).
            Units: m/s².
        specific_force_std: Standard deviation of the measurement noise.
            Units: m/s². Used as weight 1/σ² during estimation.
        orientation: Optional body-to-NED rotation matrix C_b^n, shape (3, 3).
            When every measurement of a run carries one, the full gravity
            vector is known in body frame; otherwise only its norm is used.

    Example:
        >>> import numpy as np
        >>> from imucal.coords import euler_to_rotation_matrix
        >>> meas = AccelMeasurement(
        ...     specific_force=np.array([0.12, -0.31, -9.79]),
        ...     specific_force_std=1e-3,
        ...     orientation=euler_to_rotation_matrix(0.03, -0.01, 1.2),
        ... )
    """

    specific_force: np.ndarray
    specific_force_std: float = 1.0
    orientation: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        """Validate and freeze the measurement arrays."""
        object.__setattr__(
            self,
            "specific_force",
            _frozen_array(self.specific_force, (3,), "specific_force"),
        )

        std = float(self.specific_force_std)
        if not np.isfinite(std) or std <= 0.0:
            raise ValueError(
                f"specific_force_std must be positive, got {self.specific_force_std}"
            )
        object.__setattr__(self, "specific_force_std", std)

        if self.orientation is not None:
            orientation = _frozen_array(self.orientation, (3, 3), "orientation")
            if not is_rotation_matrix(orientation):
                raise ValueError("orientation must be a proper rotation matrix")
            object.__setattr__(self, "orientation", orientation)

    @property
    def has_orientation(self) -> bool:
        return self.orientation is not None


@dataclass(frozen=True)
class EcefPosition:
    """Calibration site in ECEF coordinates.

    Attributes:
        x: ECEF x-coordinate in meters.
        y: ECEF y-coordinate in meters.
        z: ECEF z-coordinate in meters.
    """

    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "z"):
            value = float(getattr(self, name))
            if not np.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
            object.__setattr__(self, name, value)

    @classmethod
    def from_array(cls, xyz: np.ndarray) -> "EcefPosition":
        xyz = np.asarray(xyz, dtype=np.float64)
        if xyz.shape != (3,):
            raise ValueError(f"xyz must have shape (3,), got {xyz.shape}")
        return cls(float(xyz[0]), float(xyz[1]), float(xyz[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def to_ecef(self) -> "EcefPosition":
        return self

    def to_ned(self) -> "NedPosition":
        lat, lon, height = ecef_to_llh(self.x, self.y, self.z)
        return NedPosition(float(lat), float(lon), float(height))

    def equals(self, other: "Position", threshold: float = 1e-8) -> bool:
        """Compare coordinates with an absolute tolerance in meters.

        ``other`` may be expressed in either representation.
        """
        if other is None:
            return False
        diff = np.abs(self.as_array() - other.to_ecef().as_array())
        return bool(np.all(diff <= threshold))


@dataclass(frozen=True)
class NedPosition:
    """Calibration site as the geodetic origin of a local NED frame.

    Attributes:
        latitude: Latitude in radians (positive north).
        longitude: Longitude in radians (positive east).
        height: Height above the WGS84 ellipsoid in meters.
    """

    latitude: float
    longitude: float
    height: float = 0.0

    def __post_init__(self) -> None:
        for name in ("latitude", "longitude", "height"):
            value = float(getattr(self, name))
            if not np.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
            object.__setattr__(self, name, value)
        if abs(self.latitude) > np.pi / 2.0:
            raise ValueError(
                f"latitude must be within [-pi/2, pi/2] rad, got {self.latitude}"
            )

    @classmethod
    def from_degrees(
        cls, latitude_deg: float, longitude_deg: float, height: float = 0.0
    ) -> "NedPosition":
        return cls(np.deg2rad(latitude_deg), np.deg2rad(longitude_deg), height)

    def as_array(self) -> np.ndarray:
        return np.array([self.latitude, self.longitude, self.height], dtype=np.float64)

    def to_ecef(self) -> EcefPosition:
        return EcefPosition.from_array(
            llh_to_ecef(self.latitude, self.longitude, self.height)
        )

    def to_ned(self) -> "NedPosition":
        return self

    def equals(self, other: "Position", threshold: float = 1e-8) -> bool:
        """Compare latitude/longitude (radians) and height (meters).

        The same absolute ``threshold`` is applied to every component.
        """
        if other is None:
            return False
        diff = np.abs(self.as_array() - other.to_ned().as_array())
        return bool(np.all(diff <= threshold))


Position = Union[EcefPosition, NedPosition]
