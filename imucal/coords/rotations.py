"""Attitude representations for accelerometer measurements.

A measurement's orientation is stored as the body-to-NED rotation matrix
C_b^n. These helpers build that matrix from Euler angles and check that a
user-supplied matrix is a proper rotation.

Conventions:
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
"""

import numpy as np
from numpy.typing import NDArray


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to the body-to-NED rotation matrix.

    Args:
        roll: Roll angle φ in radians (rotation about body x-axis).
        pitch: Pitch angle θ in radians (rotation about body y-axis).
        yaw: Yaw angle ψ in radians (rotation about down axis).

    Returns:
        3x3 rotation matrix C such that v_ned = C @ v_body.

    Example:
        >>> import numpy as np
        >>> C = euler_to_rotation_matrix(0.1, -0.2, 1.3)
        >>> print(f"Determinant (should be 1.0): {np.linalg.det(C):.6f}")
    """
    cr = np.cos(roll)
    sr = np.sin(roll)
    cp = np.cos(pitch)
    sp = np.sin(pitch)
    cy = np.cos(yaw)
    sy = np.sin(yaw)

    return np.array(
        [
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp, cp * sr, cp * cr],
        ],
        dtype=np.float64,
    )


def is_rotation_matrix(R: NDArray[np.float64], atol: float = 1e-6) -> bool:
    """Check that R is 3x3, orthonormal and right-handed (det = +1)."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        return False
    if not np.allclose(R @ R.T, np.eye(3), atol=atol):
        return False
    return bool(abs(np.linalg.det(R) - 1.0) <= atol)
