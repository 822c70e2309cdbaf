"""
Robust accelerometer calibration for a known bias at a known position.

Methods:
    - RANSAC: maximizes the number of inliers
    - MSAC: minimizes a truncated quadratic loss
    - LMedS: minimizes the median squared residual (no threshold)
    - PROSAC: RANSAC with quality-guided sampling
    - PROMedS: LMedS with quality-guided sampling

Usage:
    >>> from imucal.calibration import create_for_method
    >>> calibrator = create_for_method(
    ...     "ransac", position=site, measurements=measurements, bias=bias
    ... )
    >>> result = calibrator.calibrate()
"""

from imucal.calibration.calibrator import (
    CalibratorListener,
    CalibratorState,
    EstimationResult,
    RobustAccelerometerCalibrator,
)
from imucal.calibration.config import EstimatorConfig, RobustMethod
from imucal.calibration.errors import (
    CalibrationError,
    EstimationFailedError,
    LockedError,
    NotReadyError,
    RefinementWarning,
    SingularModelError,
)
from imucal.calibration.factory import CalibratorSettings, create, create_for_method
from imucal.calibration.measurement_model import (
    MeasurementModel,
    ModelForm,
    predict_specific_force,
)

__all__ = [
    # Calibrator
    "RobustAccelerometerCalibrator",
    "CalibratorListener",
    "CalibratorState",
    "EstimationResult",
    # Configuration
    "EstimatorConfig",
    "RobustMethod",
    # Factory
    "CalibratorSettings",
    "create",
    "create_for_method",
    # Model
    "MeasurementModel",
    "ModelForm",
    "predict_specific_force",
    # Errors
    "CalibrationError",
    "EstimationFailedError",
    "LockedError",
    "NotReadyError",
    "RefinementWarning",
    "SingularModelError",
]
