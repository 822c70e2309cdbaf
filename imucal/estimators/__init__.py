"""
Least squares solvers used by the calibration package.

Available estimators:
    - Weighted linear least squares (per-axis hypotheses)
    - Levenberg-Marquardt nonlinear least squares (gravity-norm hypotheses
      and final refinement)
"""

from imucal.estimators.least_squares import weighted_least_squares
from imucal.estimators.nonlinear_least_squares import (
    levenberg_marquardt,
    NonlinearLSResult,
)

__all__ = [
    # Linear LS
    "weighted_least_squares",
    # Nonlinear LS
    "levenberg_marquardt",
    "NonlinearLSResult",
]
