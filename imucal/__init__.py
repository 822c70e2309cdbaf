"""Robust accelerometer calibration at a known position.

This package contains:
- calibration: Robust estimators (RANSAC, LMedS, MSAC, PROSAC, PROMedS) of
  the accelerometer scale-factor / cross-coupling matrix for a known bias
- coords: Geodetic/ECEF conversions and attitude representations
- estimators: Linear and nonlinear least squares solvers
- sensors: Measurement types and the Earth gravity model
- sim: Synthetic calibration data
- eval: Metrics and plots
"""

__version__ = "0.1.0"
