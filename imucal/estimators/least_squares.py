"""
Weighted linear least squares.

Used to solve the per-axis hypotheses of the accelerometer error model, which
is linear in the unknown matrix when the gravity direction of every
measurement is known.

Solves: x_hat = argmin (Ax - b)' W (Ax - b)
Solution: x_hat = (A'WA)^(-1) A'Wb

Setting wᵢ = 1/σᵢ² (the inverse of noise variance) yields the best linear
unbiased estimate.
"""

from typing import Optional, Tuple

import numpy as np


def weighted_least_squares(
    A: np.ndarray,
    b: np.ndarray,
    sigma: Optional[np.ndarray] = None,
    return_covariance: bool = True,
    rcond: float = 1e-10,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Weighted least squares estimation from measurement standard deviations.

    Args:
        A: Design matrix (m × n), where m ≥ n.
        b: Observation vector (m,).
        sigma: Measurement standard deviations σᵢ (m,). Weights are
            wᵢ = 1/σᵢ². If None, uniform weights are used.
        return_covariance: If True, compute the covariance (A'WA)^(-1).
        rcond: Relative singular value cutoff used to detect a rank
            deficient normal matrix.

    Returns:
        Tuple of:
            - x_hat: Estimated parameter vector (n,).
            - P: Covariance matrix (n × n), or None if return_covariance is False.

    Raises:
        ValueError: If dimensions don't match or sigma is not positive.
        numpy.linalg.LinAlgError: If A'WA is rank deficient.

    Example:
        >>> import numpy as np
        >>> A = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        >>> b = np.array([1.0, 2.0, 3.2])
        >>> sigma = np.array([0.1, 0.1, 0.5])  # third observation less accurate
        >>> x_hat, P = weighted_least_squares(A, b, sigma)
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if A.ndim != 2 or b.ndim != 1:
        raise ValueError(
            f"Invalid dimensions: A must be 2D, b must be 1D. "
            f"Got A={A.shape}, b={b.shape}"
        )

    m, n = A.shape
    if len(b) != m:
        raise ValueError(
            f"Dimension mismatch: A has {m} rows, b has {len(b)} elements"
        )
    if m < n:
        raise np.linalg.LinAlgError(f"Underdetermined system: m={m} < n={n}")

    if sigma is None:
        weights = np.ones(m)
    else:
        sigma = np.asarray(sigma, dtype=np.float64)
        if sigma.shape != (m,):
            raise ValueError(f"sigma length mismatch: expected {m}, got {sigma.shape}")
        if np.any(sigma <= 0):
            raise ValueError("Sigma values must be positive")
        weights = 1.0 / sigma**2

    # Weighted normal equations: A'WA x = A'Wb
    ATW = A.T * weights
    ATWA = ATW @ A
    ATWb = ATW @ b

    # Rank check on the normal matrix, relative to its largest singular value
    singular_values = np.linalg.svd(ATWA, compute_uv=False)
    if singular_values[0] <= 0.0 or singular_values[-1] <= rcond * singular_values[0]:
        raise np.linalg.LinAlgError(
            f"A'WA is rank deficient (condition {singular_values[0]:.3e} / "
            f"{singular_values[-1]:.3e})"
        )

    x_hat = np.linalg.solve(ATWA, ATWb)

    P = None
    if return_covariance:
        P = np.linalg.inv(ATWA)

    return x_hat, P
