"""
Generate synthetic static accelerometer measurements for calibration.

A static accelerometer senses the reaction to local gravity. For a body
attitude C_b^n at a site with NED gravity g_n the ideal reading is

    f_true = C_b^n^T (-g_n)

and the reading of a sensor with bias ba and error matrix Ma is

    f_meas = ba + (I + Ma) f_true + w,    w ~ N(0, σ² I)

Outliers are produced by adding a large random vector to a chosen fraction
of the readings, as a vibration spike or glitch would.

Example values are taken from Groves (2013), Table 4.x style MEMS errors:
scale factors and cross-couplings of a few hundred ppm.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from imucal.coords.rotations import euler_to_rotation_matrix
from imucal.sensors.gravity import ned_gravity
from imucal.sensors.types import AccelMeasurement, Position

# Scale-factor and cross-coupling errors of a typical MEMS accelerometer
DEFAULT_MA = np.array(
    [
        [500e-6, -300e-6, 200e-6],
        [-150e-6, -600e-6, 250e-6],
        [-250e-6, 100e-6, 450e-6],
    ]
)

DEFAULT_BIAS = np.array([900e-6, -1300e-6, 800e-6]) * 9.80665


@dataclass
class SyntheticAccelDataset:
    """Synthetic calibration data with its ground truth.

    Attributes:
        measurements: Generated measurements (outliers included).
        true_ma: Error matrix used to generate the data.
        bias: Bias used to generate the data.
        true_forces: Ideal specific forces f_true, shape (N, 3).
        outlier_mask: True where an outlier was injected.
        quality_scores: Score per measurement; larger for inliers, so that
            progressive samplers have a useful ranking.
    """

    measurements: list
    true_ma: np.ndarray
    bias: np.ndarray
    true_forces: np.ndarray
    outlier_mask: np.ndarray
    quality_scores: np.ndarray


def random_orientations(n: int, rng: np.random.Generator) -> np.ndarray:
    """
    Draw ``n`` body-to-NED rotation matrices from random Euler angles.

    Roll and yaw cover the full circle, pitch covers ±90°, so gravity is
    seen from every direction in the body frame.

    Returns:
        Rotation matrices, shape (n, 3, 3).
    """
    roll = rng.uniform(-np.pi, np.pi, n)
    pitch = rng.uniform(-np.pi / 2.0, np.pi / 2.0, n)
    yaw = rng.uniform(-np.pi, np.pi, n)
    return np.array(
        [euler_to_rotation_matrix(r, p, y) for r, p, y in zip(roll, pitch, yaw)]
    )


def random_error_matrix(
    rng: np.random.Generator, max_value: float = 1e-3, common_axis_used: bool = False
) -> np.ndarray:
    """Random Ma with entries in [-max_value, max_value]."""
    ma = rng.uniform(-max_value, max_value, (3, 3))
    if common_axis_used:
        ma = np.triu(ma)
    return ma


def generate_accel_measurements(
    position: Position,
    n: int,
    ma: Optional[np.ndarray] = None,
    bias: Optional[np.ndarray] = None,
    noise_std: float = 0.0,
    outlier_ratio: float = 0.0,
    outlier_std: float = 1.0,
    include_orientation: bool = True,
    std_floor: float = 1e-3,
    seed: Optional[int] = None,
) -> SyntheticAccelDataset:
    """
    Simulate static accelerometer readings at a known site.

    Args:
        position: Calibration site.
        n: Number of measurements.
        ma: True error matrix. Default: DEFAULT_MA.
        bias: True bias (m/s²). Default: DEFAULT_BIAS.
        noise_std: White noise standard deviation per axis (m/s²).
        outlier_ratio: Fraction of measurements turned into outliers.
        outlier_std: Standard deviation of the outlier offsets (m/s²).
        include_orientation: Attach the body attitude to each measurement.
            Without it the calibrator only knows the gravity norm.
        std_floor: Lower bound of the reported measurement std, which must
            be positive even for noise-free data.
        seed: Random seed.

    Returns:
        SyntheticAccelDataset with measurements and ground truth.

    Raises:
        ValueError: If n is not positive or outlier_ratio is outside [0, 1).

    Example:
        >>> from imucal.sensors import NedPosition
        >>> site = NedPosition.from_degrees(22.3, 114.2, 50.0)
        >>> data = generate_accel_measurements(site, 40, outlier_ratio=0.2, seed=1)
        >>> len(data.measurements)
        40
    """
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    if not 0.0 <= outlier_ratio < 1.0:
        raise ValueError(f"outlier_ratio must be in [0, 1), got {outlier_ratio}")
    if noise_std < 0.0:
        raise ValueError(f"noise_std must be non-negative, got {noise_std}")

    rng = np.random.default_rng(seed)
    ma = DEFAULT_MA.copy() if ma is None else np.asarray(ma, dtype=np.float64)
    bias = DEFAULT_BIAS.copy() if bias is None else np.asarray(bias, dtype=np.float64)

    orientations = random_orientations(n, rng)
    g_n = ned_gravity(position)
    true_forces = np.einsum("kji,j->ki", orientations, -g_n)

    measured = bias + true_forces @ (np.eye(3) + ma).T
    if noise_std > 0.0:
        measured = measured + rng.normal(0.0, noise_std, (n, 3))

    num_outliers = int(round(outlier_ratio * n))
    outlier_mask = np.zeros(n, dtype=bool)
    outlier_mask[rng.choice(n, size=num_outliers, replace=False)] = True
    measured[outlier_mask] += rng.normal(0.0, outlier_std, (num_outliers, 3))

    # Inliers score in [0.5, 1], outliers in [0, 0.5)
    quality_scores = np.where(
        outlier_mask, rng.uniform(0.0, 0.5, n), rng.uniform(0.5, 1.0, n)
    )

    std = max(noise_std, std_floor)
    measurements = [
        AccelMeasurement(
            specific_force=measured[k],
            specific_force_std=std,
            orientation=orientations[k] if include_orientation else None,
        )
        for k in range(n)
    ]

    return SyntheticAccelDataset(
        measurements=measurements,
        true_ma=ma,
        bias=bias,
        true_forces=true_forces,
        outlier_mask=outlier_mask,
        quality_scores=quality_scores,
    )
