"""
Accelerometer error model for a known bias at a known position.

Error model:
    f_meas = ba + (I + Ma) f_true

where ba is the (known) bias and Ma the scale-factor / cross-coupling matrix

    Ma = [sx    mxy  mxz]
         [myx   sy   myz]
         [mzx   mzy  sz ]

A static accelerometer senses the reaction to local gravity, so f_true is
known from the calibration site once the body attitude is known. Two
residual forms follow:

    Frame form (every measurement has an orientation C_b^n):
        f_true = C_b^n^T (-g_n)
        r = f_meas - ba - (I + Ma) f_true                 (3 components)
    Linear in Ma; each row of Ma is solved independently by weighted linear
    least squares.

    Gravity-norm form (at least one orientation unknown):
        r = ‖g‖ - ‖(I + Ma)^-1 (f_meas - ba)‖             (1 component)
    Nonlinear; solved with Levenberg-Marquardt from the initial matrix.

With the common-axis assumption Ma is upper triangular (myx = mzx = mzy = 0)
and only 6 of the 9 entries are free. Parameters are always packed in
row-major order of the free entries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from imucal.calibration.errors import SingularModelError
from imucal.estimators.least_squares import weighted_least_squares
from imucal.estimators.nonlinear_least_squares import levenberg_marquardt
from imucal.sensors.gravity import expected_specific_force, gravity_norm, ned_gravity
from imucal.sensors.types import AccelMeasurement, Position

GENERAL_UNKNOWNS = 9
COMMON_AXIS_UNKNOWNS = 6

# Orientation known: each measurement constrains all three rows of Ma
MINIMUM_FRAME_MEASUREMENTS_GENERAL = 4
MINIMUM_FRAME_MEASUREMENTS_COMMON_AXIS = 3

# Only the gravity norm known: one scalar equation per measurement
MINIMUM_NORM_MEASUREMENTS_GENERAL = GENERAL_UNKNOWNS + 1
MINIMUM_NORM_MEASUREMENTS_COMMON_AXIS = COMMON_AXIS_UNKNOWNS + 1

# Condition number beyond which I + Ma is treated as singular
MAX_CONDITION_NUMBER = 1e12

# Iteration cap of the LM solve used for gravity-norm hypotheses
HYPOTHESIS_MAX_ITERATIONS = 100


class ModelForm(Enum):
    """Residual form selected from the available measurement orientations."""

    FRAME = "frame"
    GRAVITY_NORM = "gravity_norm"


def free_parameter_mask(common_axis_used: bool) -> np.ndarray:
    """Boolean 3x3 mask of the Ma entries that are estimated."""
    if common_axis_used:
        return np.triu(np.ones((3, 3), dtype=bool))
    return np.ones((3, 3), dtype=bool)


def ma_to_params(ma: np.ndarray, common_axis_used: bool) -> np.ndarray:
    """Pack the free entries of Ma into a parameter vector (row-major)."""
    ma = np.asarray(ma, dtype=np.float64)
    return ma[free_parameter_mask(common_axis_used)].copy()


def params_to_ma(params: np.ndarray, common_axis_used: bool) -> np.ndarray:
    """Unpack a parameter vector into Ma; fixed entries are zero."""
    ma = np.zeros((3, 3))
    ma[free_parameter_mask(common_axis_used)] = params
    return ma


def minimum_measurements(common_axis_used: bool, orientation_known: bool) -> int:
    """Smallest subset that determines Ma for the given model form."""
    if orientation_known:
        if common_axis_used:
            return MINIMUM_FRAME_MEASUREMENTS_COMMON_AXIS
        return MINIMUM_FRAME_MEASUREMENTS_GENERAL
    if common_axis_used:
        return MINIMUM_NORM_MEASUREMENTS_COMMON_AXIS
    return MINIMUM_NORM_MEASUREMENTS_GENERAL


def predict_specific_force(
    ma: np.ndarray,
    bias: np.ndarray,
    position: Position,
    orientation: np.ndarray,
) -> np.ndarray:
    """
    Specific force an accelerometer with errors (ba, Ma) reports at rest.

    Args:
        ma: Scale-factor and cross-coupling matrix, shape (3, 3).
        bias: Accelerometer bias, shape (3,). Units: m/s².
        position: Calibration site.
        orientation: Body-to-NED rotation matrix C_b^n, shape (3, 3).

    Returns:
        Predicted measured specific force ba + (I + Ma) f_true, shape (3,).
    """
    ma = np.asarray(ma, dtype=np.float64)
    bias = np.asarray(bias, dtype=np.float64)
    f_true = expected_specific_force(position, orientation)
    return bias + (np.eye(3) + ma) @ f_true


@dataclass
class LeastSquaresProblem:
    """Weighted nonlinear LS problem in the free parameters of Ma."""

    h: Callable[[np.ndarray], np.ndarray]
    jacobian: Callable[[np.ndarray], np.ndarray]
    y: np.ndarray
    weights: np.ndarray


class MeasurementModel:
    """
    Residuals, Jacobians and minimal-subset hypotheses for one calibration run.

    The model keeps a reference to the caller's measurements and caches their
    values as arrays once, so scoring every hypothesis against the whole set
    is vectorized.

    Args:
        measurements: Static accelerometer measurements.
        position: Calibration site (ECEF or NED).
        bias: Known accelerometer bias, shape (3,). Defaults to zero.
        common_axis_used: Whether Ma is constrained to be upper triangular.
        initial_ma: Starting matrix for iterative solves. Defaults to zero.

    Example:
        >>> model = MeasurementModel(measurements, site, bias=np.zeros(3))
        >>> ma = model.hypothesize(np.array([0, 3, 7, 9]))
        >>> errors = model.errors(ma)
    """

    def __init__(
        self,
        measurements: Sequence[AccelMeasurement],
        position: Position,
        bias: Optional[np.ndarray] = None,
        common_axis_used: bool = False,
        initial_ma: Optional[np.ndarray] = None,
    ):
        if position is None:
            raise ValueError("position is required")

        self.measurements = measurements
        self.position = position
        self.common_axis_used = bool(common_axis_used)
        self.bias = np.zeros(3) if bias is None else np.asarray(bias, dtype=np.float64)
        if self.bias.shape != (3,):
            raise ValueError(f"bias must have shape (3,), got {self.bias.shape}")

        initial_ma = np.zeros((3, 3)) if initial_ma is None else np.asarray(initial_ma)
        if initial_ma.shape != (3, 3):
            raise ValueError(f"initial_ma must have shape (3, 3), got {initial_ma.shape}")
        self.initial_params = ma_to_params(initial_ma, self.common_axis_used)
        self._mask = free_parameter_mask(self.common_axis_used)

        self.specific_forces = np.array(
            [m.specific_force for m in measurements], dtype=np.float64
        ).reshape(-1, 3)
        self.stds = np.array(
            [m.specific_force_std for m in measurements], dtype=np.float64
        )

        self.gravity_ned = ned_gravity(position)
        self.gravity_norm = gravity_norm(position)

        if len(measurements) > 0 and all(m.has_orientation for m in measurements):
            self.form = ModelForm.FRAME
            orientations = np.array([m.orientation for m in measurements])
            # f_true = C_b^n^T (-g_n), for every measurement at once
            self.true_forces = np.einsum("kji,j->ki", orientations, -self.gravity_ned)
        else:
            self.form = ModelForm.GRAVITY_NORM
            self.true_forces = None

    @property
    def num_measurements(self) -> int:
        return len(self.stds)

    @property
    def num_parameters(self) -> int:
        return COMMON_AXIS_UNKNOWNS if self.common_axis_used else GENERAL_UNKNOWNS

    @property
    def minimum_subset_size(self) -> int:
        return minimum_measurements(self.common_axis_used, self.form == ModelForm.FRAME)

    def predict(self, ma: np.ndarray, index: int) -> np.ndarray:
        """Predicted specific force of measurement ``index`` (frame form only)."""
        if self.form != ModelForm.FRAME:
            raise ValueError("Prediction needs the orientation of every measurement")
        return self.bias + (np.eye(3) + ma) @ self.true_forces[index]

    def residual(self, measurement: AccelMeasurement, ma: np.ndarray) -> np.ndarray:
        """
        Residual of a single measurement against a candidate matrix.

        Returns the 3-component frame residual when the measurement has an
        orientation and the model is in frame form, otherwise the 1-component
        gravity-norm residual.
        """
        ma = np.asarray(ma, dtype=np.float64)
        if self.form == ModelForm.FRAME and measurement.has_orientation:
            f_true = measurement.orientation.T @ (-self.gravity_ned)
            return measurement.specific_force - self.bias - (np.eye(3) + ma) @ f_true

        T = self._inverse_scaling(ma)
        u = T @ (measurement.specific_force - self.bias)
        return np.array([self.gravity_norm - np.linalg.norm(u)])

    def errors(self, ma: np.ndarray, indices: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Residual magnitudes used to score a hypothesis.

        Args:
            ma: Candidate matrix, shape (3, 3).
            indices: Measurement indices to evaluate; all when None.

        Returns:
            Non-negative residual magnitude per measurement (m/s²).
        """
        if indices is None:
            indices = slice(None)
        forces = self.specific_forces[indices] - self.bias

        if self.form == ModelForm.FRAME:
            predicted = self.true_forces[indices] @ (np.eye(3) + ma).T
            return np.linalg.norm(forces - predicted, axis=1)

        T = self._inverse_scaling(ma)
        norms = np.linalg.norm(forces @ T.T, axis=1)
        return np.abs(self.gravity_norm - norms)

    def hypothesize(self, indices: np.ndarray) -> np.ndarray:
        """
        Solve Ma from a subset of measurements.

        Raises:
            SingularModelError: If the subset does not determine Ma.
        """
        indices = np.asarray(indices, dtype=int)
        if len(indices) < self.minimum_subset_size:
            raise SingularModelError(
                f"Subset of {len(indices)} measurements is below the minimum "
                f"of {self.minimum_subset_size}"
            )

        if self.form == ModelForm.FRAME:
            return self._hypothesize_frame(indices)
        return self._hypothesize_norm(indices)

    def problem(self, indices: np.ndarray) -> LeastSquaresProblem:
        """Weighted LS problem over ``indices`` in the free parameters of Ma."""
        indices = np.asarray(indices, dtype=int)
        forces = self.specific_forces[indices] - self.bias
        weights = 1.0 / self.stds[indices] ** 2
        mask = self._mask.ravel()
        common_axis_used = self.common_axis_used

        if self.form == ModelForm.FRAME:
            true_forces = self.true_forces[indices]
            k = len(indices)

            def h(params):
                ma = params_to_ma(params, common_axis_used)
                return (true_forces @ (np.eye(3) + ma).T).ravel()

            # ∂(I + Ma) f / ∂Ma_ij = f_j on output row i
            full_jacobian = np.zeros((k, 3, 9))
            for row in range(3):
                full_jacobian[:, row, 3 * row:3 * row + 3] = true_forces
            constant_jacobian = full_jacobian.reshape(3 * k, 9)[:, mask]

            def jacobian(params):
                return constant_jacobian

            return LeastSquaresProblem(
                h=h,
                jacobian=jacobian,
                y=forces.ravel(),
                weights=np.repeat(weights, 3),
            )

        def h_norm(params):
            T = self._inverse_scaling(params_to_ma(params, common_axis_used))
            return np.linalg.norm(forces @ T.T, axis=1)

        def jacobian_norm(params):
            # ∂‖T y‖/∂Ma_ij = -(T^T û)_i u_j with u = T y, û = u/‖u‖
            T = self._inverse_scaling(params_to_ma(params, common_axis_used))
            u = forces @ T.T
            norms = np.maximum(np.linalg.norm(u, axis=1, keepdims=True), 1e-12)
            a = (u / norms) @ T
            full = -a[:, :, None] * u[:, None, :]
            return full.reshape(len(u), 9)[:, mask]

        return LeastSquaresProblem(
            h=h_norm,
            jacobian=jacobian_norm,
            y=np.full(len(indices), self.gravity_norm),
            weights=weights,
        )

    def _hypothesize_frame(self, indices: np.ndarray) -> np.ndarray:
        true_forces = self.true_forces[indices]
        targets = self.specific_forces[indices] - self.bias - true_forces
        stds = self.stds[indices]

        ma = np.zeros((3, 3))
        for row in range(3):
            cols = self._mask[row]
            try:
                solution, _ = weighted_least_squares(
                    true_forces[:, cols], targets[:, row], stds, return_covariance=False
                )
            except np.linalg.LinAlgError as e:
                raise SingularModelError(
                    f"Gravity directions of the subset do not determine row {row} of Ma"
                ) from e
            ma[row, cols] = solution
        return ma

    def _hypothesize_norm(self, indices: np.ndarray) -> np.ndarray:
        problem = self.problem(indices)
        # I + Ma turning singular mid-solve raises SingularModelError from h()
        solution = levenberg_marquardt(
            problem.h,
            problem.jacobian,
            problem.y,
            self.initial_params,
            weights=problem.weights,
            max_iter=HYPOTHESIS_MAX_ITERATIONS,
            return_covariance=False,
        )
        if not np.all(np.isfinite(solution.x)):
            raise SingularModelError("Gravity-norm solve diverged")

        # The norm only sees (I + Ma)^T (I + Ma): at most 6 directions are
        # observable, whatever the number of free entries
        J = problem.jacobian(solution.x)
        if np.linalg.matrix_rank(J) < COMMON_AXIS_UNKNOWNS:
            raise SingularModelError("Gravity-norm Jacobian of the subset is rank deficient")

        return params_to_ma(solution.x, self.common_axis_used)

    def _inverse_scaling(self, ma: np.ndarray) -> np.ndarray:
        scaling = np.eye(3) + ma
        if not np.all(np.isfinite(scaling)):
            raise SingularModelError("I + Ma is not finite")
        singular_values = np.linalg.svd(scaling, compute_uv=False)
        if singular_values[-1] * MAX_CONDITION_NUMBER <= singular_values[0] or singular_values[0] == 0.0:
            raise SingularModelError("I + Ma is not invertible")
        return np.linalg.inv(scaling)
