"""
Nonlinear least squares solver using Levenberg-Marquardt.

Used both to hypothesize the accelerometer error matrix from a small subset
of gravity-norm measurements and to refine the matrix over the final inlier
set.

Mathematical Formulation:
    Given observations y and measurement model h(x), we seek:
        x̂ = argmin ½‖r(x)‖²_W
    where r(x) = y - h(x) is the residual vector.

    Levenberg-Marquardt update:
        (J'WJ + μI) Δx = J'W r
    where J = ∂h/∂x and μ is an adaptive damping parameter updated from the
    gain ratio between actual and predicted cost decrease.

Stopping rules:
    - relative cost decrease below ``tol`` after an accepted step
    - cost numerically zero (exact fit)
    - damping saturated: no step decreases the cost any more, which only
      happens at a stationary point
    - ``max_iter`` reached: the result is returned with ``converged=False``
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

# Damping above this value means no descent step exists from the current point
MAX_DAMPING = 1e12

# Cost below this value is treated as an exact fit
ZERO_COST = 1e-30


@dataclass
class NonlinearLSResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Covariance matrix (n × n), or None.
        iterations: Number of iterations performed.
        residuals: Final residuals r = y - h(x̂).
        cost: Final cost value ½‖r‖²_W.
        chi_sq: Final weighted sum of squared residuals r'Wr.
        mse: Mean of the squared (unweighted) residuals.
        converged: Whether a stopping rule other than the iteration cap fired.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    cost: float
    chi_sq: float
    mse: float
    converged: bool


def levenberg_marquardt(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 50,
    tol: float = 1e-12,
    mu0: float = 1e-3,
    return_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Levenberg-Marquardt solver for weighted nonlinear least squares.

    Solves: x̂ = argmin ½‖y - h(x)‖²_W

    Args:
        h: Measurement model function h: R^n → R^m.
        jacobian: Function returning Jacobian matrix J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial parameter estimate (n,).
        weights: Optional measurement weights (m,), typically 1/σ².
        max_iter: Maximum number of iterations.
        tol: Relative cost decrease below which the solver stops.
        mu0: Initial damping parameter.
        return_covariance: If True, compute covariance at final estimate.

    Returns:
        NonlinearLSResult containing estimate, covariance and diagnostics.

    Raises:
        ValueError: If shapes are inconsistent or weights are negative.

    Example:
        >>> import numpy as np
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]])
        >>> def h(x):
        ...     return np.linalg.norm(anchors - x, axis=1)
        >>> def jac(x):
        ...     diff = x - anchors
        ...     ranges = np.linalg.norm(diff, axis=1, keepdims=True)
        ...     return diff / np.maximum(ranges, 1e-10)
        >>> y = h(np.array([3.0, 4.0]))
        >>> result = levenberg_marquardt(h, jac, y, x0=np.array([5.0, 5.0]))
    """
    y = np.asarray(y, dtype=np.float64)
    x0 = np.asarray(x0, dtype=np.float64)

    if y.ndim != 1:
        raise ValueError(f"y must be 1D array, got shape {y.shape}")
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")

    m = len(y)
    n = len(x0)
    x = x0.copy()

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=np.float64)
        if w.ndim != 1 or len(w) != m:
            raise ValueError(f"weights must be 1D array of length {m}")
        if np.any(w < 0):
            raise ValueError("weights must be non-negative")

    def evaluate(x_eval):
        hx = np.asarray(h(x_eval), dtype=np.float64)
        if hx.shape != (m,):
            raise ValueError(f"h(x) returned shape {hx.shape}, expected ({m},)")
        r_eval = y - hx
        return r_eval, 0.5 * float(r_eval @ (w * r_eval))

    r, cost = evaluate(x)

    mu = mu0
    nu = 2.0
    converged = False
    iteration = 0

    while iteration < max_iter:
        if not np.isfinite(cost):
            break
        if cost <= ZERO_COST:
            converged = True
            break

        iteration += 1

        J = np.asarray(jacobian(x), dtype=np.float64)
        if J.shape != (m, n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({m}, {n})")

        JtW = J.T * w
        JtWJ = JtW @ J
        JtWr = JtW @ r

        # Inner loop: raise damping until a step decreases the cost
        accepted = False
        while mu <= MAX_DAMPING:
            JtWJ_damped = JtWJ + mu * np.eye(n)
            try:
                delta_x = np.linalg.solve(JtWJ_damped, JtWr)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(JtWJ_damped, JtWr, rcond=None)[0]

            x_new = x + delta_x
            r_new, cost_new = evaluate(x_new)

            predicted_decrease = 0.5 * delta_x @ (mu * delta_x + JtWr)
            actual_decrease = cost - cost_new

            if predicted_decrease > 0.0 and np.isfinite(cost_new) and actual_decrease > 0.0:
                gain_ratio = actual_decrease / predicted_decrease
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                accepted = True
                break

            mu = mu * nu
            nu = 2.0 * nu

        if not accepted:
            # Stationary point: no direction reduces the cost
            converged = True
            break

        relative_decrease = (cost - cost_new) / cost
        x, r, cost = x_new, r_new, cost_new

        if relative_decrease < tol:
            converged = True
            break

    chi_sq = float(r @ (w * r))
    mse = float(np.mean(r**2)) if m > 0 else 0.0

    P = None
    if return_covariance:
        J = np.asarray(jacobian(x), dtype=np.float64)
        JtWJ = (J.T * w) @ J

        # Residual variance factor
        if m > n:
            sigma2 = chi_sq / (m - n)
        else:
            sigma2 = 1.0

        try:
            P = sigma2 * np.linalg.inv(JtWJ)
        except np.linalg.LinAlgError:
            P = sigma2 * np.linalg.pinv(JtWJ)

    return NonlinearLSResult(
        x=x,
        covariance=P,
        iterations=iteration,
        residuals=r,
        cost=cost,
        chi_sq=chi_sq,
        mse=mse,
        converged=converged,
    )
