"""
Evaluation and Visualization Module.

Modules:
    metrics: Matrix error and inlier detection metrics
    plots: Residual and error plots for calibration runs
"""

from .metrics import (
    compute_inlier_detection_stats,
    compute_matrix_error_stats,
    compute_matrix_errors,
    compute_rmse,
)
from .plots import plot_ma_errors, plot_residuals, save_figure

__all__ = [
    # Metrics
    "compute_matrix_errors",
    "compute_matrix_error_stats",
    "compute_inlier_detection_stats",
    "compute_rmse",
    # Plots
    "plot_residuals",
    "plot_ma_errors",
    "save_figure",
]
