"""Construction of robust calibrators from a single settings object."""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from imucal.calibration.calibrator import CalibratorListener, RobustAccelerometerCalibrator
from imucal.calibration.config import EstimatorConfig, RobustMethod
from imucal.sensors.types import AccelMeasurement, Position


@dataclass
class CalibratorSettings:
    """Everything needed to build a calibrator.

    ``None`` means "not given"; the calibrator then uses its own default
    (zero bias, zero initial matrix, default configuration). Quality scores
    are dropped for methods that do not use them.
    """

    method: RobustMethod = RobustAccelerometerCalibrator.DEFAULT_METHOD
    position: Optional[Position] = None
    measurements: Optional[Sequence[AccelMeasurement]] = None
    common_axis_used: bool = False
    bias: Optional[np.ndarray] = None
    initial_ma: Optional[np.ndarray] = None
    quality_scores: Optional[np.ndarray] = None
    listener: Optional[CalibratorListener] = None
    config: EstimatorConfig = field(default_factory=EstimatorConfig)
    random_state: Optional[int] = None


def create(settings: Optional[CalibratorSettings] = None) -> RobustAccelerometerCalibrator:
    """Build a calibrator from ``settings`` (defaults when None)."""
    if settings is None:
        settings = CalibratorSettings()
    return RobustAccelerometerCalibrator(
        method=settings.method,
        measurements=settings.measurements,
        position=settings.position,
        bias=settings.bias,
        initial_ma=settings.initial_ma,
        common_axis_used=settings.common_axis_used,
        quality_scores=settings.quality_scores,
        listener=settings.listener,
        config=settings.config,
        random_state=settings.random_state,
    )


def create_for_method(method, **kwargs) -> RobustAccelerometerCalibrator:
    """
    Shortcut for ``create(CalibratorSettings(method=method, **kwargs))``.

    ``method`` may be a RobustMethod or its string value (``"prosac"``).

    Example:
        >>> calibrator = create_for_method(
        ...     "msac", position=site, measurements=measurements, random_state=1
        ... )
    """
    return create(CalibratorSettings(method=RobustMethod(method), **kwargs))
