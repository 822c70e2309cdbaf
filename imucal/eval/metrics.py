"""
Evaluation metrics for accelerometer calibration.

Compares an estimated error matrix with the ground truth and measures how
well the robust estimator separated inliers from outliers.
"""

from typing import Dict, Optional, Union

import numpy as np


def compute_matrix_errors(true_ma: np.ndarray, estimated_ma: np.ndarray) -> np.ndarray:
    """
    Element-wise error of an estimated error matrix.

    Args:
        true_ma: Ground-truth matrix, shape (3, 3).
        estimated_ma: Estimated matrix, shape (3, 3).

    Returns:
        errors: estimated_ma - true_ma, shape (3, 3).

    Raises:
        ValueError: If either input is not 3x3.
    """
    true_ma = np.asarray(true_ma, dtype=np.float64)
    estimated_ma = np.asarray(estimated_ma, dtype=np.float64)

    if true_ma.shape != (3, 3) or estimated_ma.shape != (3, 3):
        raise ValueError(
            f"Expected 3x3 matrices, got {true_ma.shape} and {estimated_ma.shape}"
        )

    return estimated_ma - true_ma


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error values of any shape.
        axis: Axis along which to compute RMSE; None for a scalar.

    Returns:
        rmse: RMSE value(s)
    """
    errors = np.asarray(errors)

    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_matrix_error_stats(true_ma: np.ndarray, estimated_ma: np.ndarray) -> Dict[str, float]:
    """
    Summary of the error of an estimated matrix.

    Returns:
        stats: Dictionary with keys:
               - 'max_abs': Largest absolute element error
               - 'rmse': RMSE over the nine elements
               - 'scale_rmse': RMSE over the diagonal (scale factors)
               - 'coupling_rmse': RMSE over the off-diagonal elements
    """
    errors = compute_matrix_errors(true_ma, estimated_ma)
    off_diagonal = errors[~np.eye(3, dtype=bool)]

    return {
        "max_abs": float(np.max(np.abs(errors))),
        "rmse": compute_rmse(errors),
        "scale_rmse": compute_rmse(np.diag(errors)),
        "coupling_rmse": compute_rmse(off_diagonal),
    }


def compute_inlier_detection_stats(
    outlier_mask: np.ndarray, inlier_mask: np.ndarray
) -> Dict[str, float]:
    """
    Agreement between detected inliers and the true inlier set.

    Args:
        outlier_mask: True where an outlier was injected.
        inlier_mask: True where the estimator kept the measurement.

    Returns:
        stats: Dictionary with keys:
               - 'precision': Fraction of kept measurements that are inliers
               - 'recall': Fraction of true inliers that were kept
               - 'false_inliers': Outliers that were kept
               - 'missed_inliers': Inliers that were rejected

    Raises:
        ValueError: If the masks differ in length.
    """
    outlier_mask = np.asarray(outlier_mask, dtype=bool)
    inlier_mask = np.asarray(inlier_mask, dtype=bool)

    if outlier_mask.shape != inlier_mask.shape:
        raise ValueError(
            f"Shape mismatch: outlier_mask {outlier_mask.shape} vs "
            f"inlier_mask {inlier_mask.shape}"
        )

    true_inliers = ~outlier_mask
    kept_true = np.count_nonzero(inlier_mask & true_inliers)
    kept = np.count_nonzero(inlier_mask)
    total_true = np.count_nonzero(true_inliers)

    return {
        "precision": kept_true / kept if kept > 0 else 0.0,
        "recall": kept_true / total_true if total_true > 0 else 0.0,
        "false_inliers": int(np.count_nonzero(inlier_mask & outlier_mask)),
        "missed_inliers": int(np.count_nonzero(~inlier_mask & true_inliers)),
    }
