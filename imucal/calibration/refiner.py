"""Levenberg-Marquardt polishing of the error matrix over an inlier set."""

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from imucal.calibration.errors import RefinementWarning
from imucal.calibration.measurement_model import (
    MeasurementModel,
    ma_to_params,
    params_to_ma,
)
from imucal.estimators.nonlinear_least_squares import levenberg_marquardt

logger = logging.getLogger(__name__)


@dataclass
class RefinementResult:
    """Outcome of refining (or evaluating) Ma over a set of measurements.

    Attributes:
        ma: Error matrix, shape (3, 3).
        covariance: Covariance of the free parameters (row-major order of
            the free entries of Ma), or None.
        chi_sq: Weighted sum of squared residuals.
        mse: Mean squared residual.
        iterations: LM iterations performed (0 when only evaluated).
        converged: False only when the iteration cap was hit.
    """

    ma: np.ndarray
    covariance: Optional[np.ndarray]
    chi_sq: float
    mse: float
    iterations: int
    converged: bool


class NonlinearRefiner:
    """
    Refines Ma over an inlier set with weighted Levenberg-Marquardt.

    Only the free entries of Ma are parameters, so the common-axis zeros stay
    zero at every iteration.

    Args:
        model: Measurement model of the current run.
        max_iterations: LM iteration cap.
        tolerance: Relative cost decrease at which LM stops.
    """

    def __init__(self, model: MeasurementModel, max_iterations: int = 50, tolerance: float = 1e-12):
        self.model = model
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def refine(
        self, indices: np.ndarray, ma0: np.ndarray, keep_covariance: bool = True
    ) -> RefinementResult:
        """
        Refine ``ma0`` over the measurements in ``indices``.

        Raises:
            SingularModelError: If I + Ma becomes singular during the solve.
        """
        problem = self.model.problem(indices)
        x0 = ma_to_params(ma0, self.model.common_axis_used)

        solution = levenberg_marquardt(
            problem.h,
            problem.jacobian,
            problem.y,
            x0,
            weights=problem.weights,
            max_iter=self.max_iterations,
            tol=self.tolerance,
            return_covariance=keep_covariance,
        )

        if not solution.converged:
            warnings.warn(
                f"Refinement stopped after {solution.iterations} iterations without "
                "converging; returning the last accepted estimate.",
                RefinementWarning,
                stacklevel=3,
            )

        logger.debug(
            "Refined over %d measurements in %d iterations (chi_sq=%.3e)",
            len(indices),
            solution.iterations,
            solution.chi_sq,
        )

        return RefinementResult(
            ma=params_to_ma(solution.x, self.model.common_axis_used),
            covariance=solution.covariance,
            chi_sq=solution.chi_sq,
            mse=solution.mse,
            iterations=solution.iterations,
            converged=solution.converged,
        )

    def evaluate(
        self, indices: np.ndarray, ma: np.ndarray, keep_covariance: bool = True
    ) -> RefinementResult:
        """Statistics of ``ma`` over ``indices`` without changing it."""
        problem = self.model.problem(indices)
        x = ma_to_params(ma, self.model.common_axis_used)

        r = problem.y - problem.h(x)
        w = problem.weights
        chi_sq = float(r @ (w * r))
        mse = float(np.mean(r**2)) if len(r) > 0 else 0.0

        covariance = None
        if keep_covariance:
            J = problem.jacobian(x)
            JtWJ = (J.T * w) @ J
            m, n = J.shape
            sigma2 = chi_sq / (m - n) if m > n else 1.0
            try:
                covariance = sigma2 * np.linalg.inv(JtWJ)
            except np.linalg.LinAlgError:
                covariance = sigma2 * np.linalg.pinv(JtWJ)

        return RefinementResult(
            ma=np.array(ma, dtype=np.float64),
            covariance=covariance,
            chi_sq=chi_sq,
            mse=mse,
            iterations=0,
            converged=True,
        )
