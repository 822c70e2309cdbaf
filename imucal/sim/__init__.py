"""
Simulation utilities for generating synthetic calibration data.

Modules:
    accel_measurements: Static accelerometer readings at a known site, with
        a known error matrix, bias, white noise and injected outliers
"""

from imucal.sim.accel_measurements import (
    DEFAULT_BIAS,
    DEFAULT_MA,
    SyntheticAccelDataset,
    generate_accel_measurements,
    random_error_matrix,
    random_orientations,
)

__all__ = [
    "DEFAULT_BIAS",
    "DEFAULT_MA",
    "SyntheticAccelDataset",
    "generate_accel_measurements",
    "random_error_matrix",
    "random_orientations",
]
