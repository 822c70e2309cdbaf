"""
Accelerometer measurement types and the local gravity model.

Modules:
    types: AccelMeasurement, EcefPosition, NedPosition
    gravity: ECEF/NED gravity vector, gravity norm and the expected specific
        force of a static accelerometer

Design principles:
    - Measurements and positions are frozen dataclasses
    - Gravity is computed in ECEF and resolved into NED through
      imucal.coords, so both position forms give the same answer

Example:
    >>> import numpy as np
    >>> from imucal.sensors import NedPosition, ned_gravity
    >>> site = NedPosition.from_degrees(41.3825, 2.1769, 120.0)
    >>> g_n = ned_gravity(site)  # ~[0, 0, 9.80]
"""

from imucal.sensors.types import (
    AccelMeasurement,
    EcefPosition,
    NedPosition,
    Position,
)

from imucal.sensors.gravity import (
    ecef_gravity,
    ned_gravity,
    gravity_norm,
    expected_specific_force,
)

__all__ = [
    # Data types
    "AccelMeasurement",
    "EcefPosition",
    "NedPosition",
    "Position",
    # Gravity
    "ecef_gravity",
    "ned_gravity",
    "gravity_norm",
    "expected_specific_force",
]
