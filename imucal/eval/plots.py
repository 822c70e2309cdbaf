"""
Visualization utilities for accelerometer calibration.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

MA_LABELS = ["sx", "mxy", "mxz", "myx", "sy", "myz", "mzx", "mzy", "sz"]


def plot_residuals(
    residuals: np.ndarray,
    inlier_mask: np.ndarray,
    threshold: Optional[float] = None,
    title: str = "Calibration Residuals",
) -> plt.Figure:
    """
    Plot the residual magnitude of every measurement, inliers vs outliers.

    Args:
        residuals: Residual magnitude per measurement (m/s²).
        inlier_mask: True for measurements in the consensus set.
        threshold: Inlier threshold to draw (optional).
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    residuals = np.asarray(residuals)
    inlier_mask = np.asarray(inlier_mask, dtype=bool)
    index = np.arange(len(residuals))

    fig, ax = plt.subplots(figsize=(10, 5))

    ax.semilogy(
        index[inlier_mask],
        np.maximum(residuals[inlier_mask], 1e-12),
        "o",
        color="blue",
        markersize=5,
        label="Inliers",
    )
    ax.semilogy(
        index[~inlier_mask],
        np.maximum(residuals[~inlier_mask], 1e-12),
        "x",
        color="red",
        markersize=7,
        label="Outliers",
    )
    if threshold is not None:
        ax.axhline(threshold, color="gray", linestyle="--", label="Threshold")

    ax.set_xlabel("Measurement index", fontsize=12)
    ax.set_ylabel("Residual (m/s²)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_ma_errors(
    errors_dict: Dict[str, np.ndarray], title: str = "Ma Estimation Error"
) -> plt.Figure:
    """
    Grouped bar chart of the element errors of several estimates of Ma.

    Args:
        errors_dict: Dictionary of 3x3 error matrices {method: errors}
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(12, 5))

    x = np.arange(len(MA_LABELS))
    width = 0.8 / max(len(errors_dict), 1)
    colors = ["blue", "red", "green", "orange", "purple"]

    for i, (name, errors) in enumerate(errors_dict.items()):
        ax.bar(
            x + (i - (len(errors_dict) - 1) / 2.0) * width,
            np.abs(np.asarray(errors).ravel()) * 1e6,
            width,
            label=name,
            color=colors[i % len(colors)],
            alpha=0.8,
        )

    ax.set_xticks(x)
    ax.set_xticklabels(MA_LABELS)
    ax.set_ylabel("Absolute error (ppm)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3, axis="y")

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("svg", "png"),
) -> List[Path]:
    """
    Save figure in multiple formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
