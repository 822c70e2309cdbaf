"""
Robust accelerometer calibration with known bias at a known position.

Estimates the scale-factor / cross-coupling matrix Ma of

    f_meas = ba + (I + Ma) f_true

from static specific-force measurements, some of which may be outliers
(vibration spikes, glitches, misassociated samples). The search follows the
usual robust loop:

    1. sample a subset of measurements (uniform or quality-guided)
    2. solve Ma from the subset (hypothesis)
    3. score the hypothesis against all measurements
    4. keep the best hypothesis and update the termination policy
    5. refine the best hypothesis over its inliers (Levenberg-Marquardt)

The variants differ only in the strategies used in steps 1, 3 and 4, see
``imucal.calibration.methods``.

References:
    Fischler & Bolles (1981), "Random Sample Consensus"
    Rousseeuw (1984), "Least Median of Squares Regression"
    Torr & Zisserman (2000), "MLESAC"
    Chum & Matas (2005), "Matching with PROSAC - Progressive Sample Consensus"
"""

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from imucal.calibration.config import EstimatorConfig, RobustMethod
from imucal.calibration.errors import (
    EstimationFailedError,
    LockedError,
    NotReadyError,
    SingularModelError,
)
from imucal.calibration.measurement_model import MeasurementModel, minimum_measurements
from imucal.calibration.methods import build_strategy
from imucal.calibration.refiner import NonlinearRefiner
from imucal.sensors.types import AccelMeasurement, EcefPosition, NedPosition, Position

logger = logging.getLogger(__name__)


class CalibratorState(Enum):
    """Lifecycle of a calibrator: IDLE → RUNNING → SUCCEEDED | FAILED."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CalibratorListener:
    """
    Receives calibration events. Every method is a no-op by default.

    Callbacks run inline on the calibrating thread and must return quickly.
    """

    def on_calibrate_start(self, calibrator: "RobustAccelerometerCalibrator") -> None:
        pass

    def on_calibrate_end(self, calibrator: "RobustAccelerometerCalibrator") -> None:
        pass

    def on_calibrate_next_iteration(
        self, calibrator: "RobustAccelerometerCalibrator", iteration: int
    ) -> None:
        pass

    def on_calibrate_progress_change(
        self, calibrator: "RobustAccelerometerCalibrator", progress: float
    ) -> None:
        pass

    def is_cancelled(self, calibrator: "RobustAccelerometerCalibrator") -> bool:
        """Checked before every iteration; True stops the search early."""
        return False


def _read_only(array: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if array is None:
        return None
    array = np.array(array)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class EstimationResult:
    """Outcome of a successful calibration run.

    Attributes:
        estimated_ma: Estimated error matrix, shape (3, 3).
        inliers: Indices of the measurements in the best consensus set.
        inlier_mask: Boolean mask over all measurements.
        residuals: Residual magnitude of every measurement against
            ``estimated_ma`` (m/s²).
        fitness: Score of the best hypothesis (inlier count, truncated loss
            or median squared residual, depending on the method).
        iterations: Subsets drawn during the search.
        covariance: Covariance of the free entries of Ma (row-major), or
            None when not kept.
        chi_sq: Weighted sum of squared residuals over the inliers.
        mse: Mean squared residual over the inliers.
        refined: Whether ``estimated_ma`` comes from the nonlinear refinement.
        converged: False when the refinement hit its iteration cap.
    """

    estimated_ma: np.ndarray
    inliers: np.ndarray
    inlier_mask: np.ndarray
    residuals: np.ndarray
    fitness: float
    iterations: int
    covariance: Optional[np.ndarray]
    chi_sq: float
    mse: float
    refined: bool
    converged: bool

    def __post_init__(self) -> None:
        for name in ("estimated_ma", "inliers", "inlier_mask", "residuals", "covariance"):
            object.__setattr__(self, name, _read_only(getattr(self, name)))


class RobustAccelerometerCalibrator:
    """
    Robust estimator of the accelerometer matrix Ma for a known bias.

    Args:
        method: Robust method. Defaults to LMedS.
        measurements: Static accelerometer measurements. The calibrator keeps
            a reference to the sequence, not a copy.
        position: Calibration site, ECEF or NED.
        bias: Known accelerometer bias (m/s²). Defaults to zero.
        initial_ma: Starting matrix for iterative solves. Defaults to zero.
        common_axis_used: Constrain Ma to be upper triangular.
        quality_scores: One score per measurement (larger is better). Used by
            PROSAC and PROMedS; ignored by the other methods.
        listener: Receives progress events.
        config: Estimator parameters. Defaults to ``EstimatorConfig()``.
        random_state: Seed or generator for subset sampling.

    Example:
        >>> calibrator = RobustAccelerometerCalibrator(
        ...     RobustMethod.RANSAC,
        ...     measurements=measurements,
        ...     position=NedPosition.from_degrees(22.3, 114.2, 50.0),
        ...     bias=bias,
        ...     random_state=0,
        ... )
        >>> result = calibrator.calibrate()
        >>> result.estimated_ma
    """

    DEFAULT_METHOD = RobustMethod.LMEDS

    def __init__(
        self,
        method: RobustMethod = DEFAULT_METHOD,
        measurements: Optional[Sequence[AccelMeasurement]] = None,
        position: Optional[Position] = None,
        bias: Optional[np.ndarray] = None,
        initial_ma: Optional[np.ndarray] = None,
        common_axis_used: bool = False,
        quality_scores: Optional[np.ndarray] = None,
        listener: Optional[CalibratorListener] = None,
        config: Optional[EstimatorConfig] = None,
        random_state=None,
    ):
        self._method = RobustMethod(method)
        self._lock = threading.Lock()
        self._state = CalibratorState.IDLE
        self._result: Optional[EstimationResult] = None

        self._measurements: Optional[Sequence[AccelMeasurement]] = None
        self._ecef_position: Optional[EcefPosition] = None
        self._bias = _read_only(np.zeros(3))
        self._initial_ma = _read_only(np.zeros((3, 3)))
        self._common_axis_used = False
        self._quality_scores: Optional[np.ndarray] = None
        self._listener: Optional[CalibratorListener] = None
        self._config = EstimatorConfig()
        self.random_state = random_state

        if measurements is not None:
            self.measurements = measurements
        if position is not None:
            self.position = position
        if bias is not None:
            self.bias = bias
        if initial_ma is not None:
            self.initial_ma = initial_ma
        self.common_axis_used = common_axis_used
        if quality_scores is not None:
            self.quality_scores = quality_scores
        self.listener = listener
        if config is not None:
            self.config = config

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def method(self) -> RobustMethod:
        return self._method

    @property
    def state(self) -> CalibratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _check_not_running(self) -> None:
        if self._lock.locked():
            raise LockedError("Calibrator is running")

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def measurements(self) -> Optional[Sequence[AccelMeasurement]]:
        return self._measurements

    @measurements.setter
    def measurements(self, value: Optional[Sequence[AccelMeasurement]]) -> None:
        self._check_not_running()
        if value is not None:
            for i, measurement in enumerate(value):
                if not isinstance(measurement, AccelMeasurement):
                    raise ValueError(
                        f"measurements[{i}] is {type(measurement).__name__}, "
                        "expected AccelMeasurement"
                    )
        self._measurements = value

    @property
    def position(self) -> Optional[EcefPosition]:
        """Calibration site in its canonical ECEF form."""
        return self._ecef_position

    @position.setter
    def position(self, value: Optional[Position]) -> None:
        self._check_not_running()
        if value is not None and not isinstance(value, (EcefPosition, NedPosition)):
            raise ValueError(
                f"position must be EcefPosition or NedPosition, got {type(value).__name__}"
            )
        self._ecef_position = None if value is None else value.to_ecef()

    @property
    def ecef_position(self) -> Optional[EcefPosition]:
        return self._ecef_position

    @ecef_position.setter
    def ecef_position(self, value: Optional[EcefPosition]) -> None:
        self.position = value

    @property
    def ned_position(self) -> Optional[NedPosition]:
        if self._ecef_position is None:
            return None
        return self._ecef_position.to_ned()

    @ned_position.setter
    def ned_position(self, value: Optional[NedPosition]) -> None:
        self.position = value

    @property
    def bias(self) -> np.ndarray:
        return self._bias

    @bias.setter
    def bias(self, value: np.ndarray) -> None:
        self._check_not_running()
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (3,):
            raise ValueError(f"bias must have shape (3,), got {value.shape}")
        self._bias = _read_only(value)

    @property
    def initial_ma(self) -> np.ndarray:
        return self._initial_ma

    @initial_ma.setter
    def initial_ma(self, value: np.ndarray) -> None:
        self._check_not_running()
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (3, 3):
            raise ValueError(f"initial_ma must have shape (3, 3), got {value.shape}")
        self._initial_ma = _read_only(value)

    @property
    def common_axis_used(self) -> bool:
        return self._common_axis_used

    @common_axis_used.setter
    def common_axis_used(self, value: bool) -> None:
        self._check_not_running()
        self._common_axis_used = bool(value)

    @property
    def quality_scores_required(self) -> bool:
        return self._method.uses_quality_scores

    @property
    def quality_scores(self) -> Optional[np.ndarray]:
        """Quality scores, or None for methods that do not use them."""
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, value: Optional[np.ndarray]) -> None:
        self._check_not_running()
        if value is None or not self.quality_scores_required:
            self._quality_scores = None
            return
        value = np.asarray(value, dtype=np.float64)
        if value.ndim != 1:
            raise ValueError(f"quality_scores must be 1D, got shape {value.shape}")
        if not np.all(np.isfinite(value)):
            raise ValueError("quality_scores must be finite")
        self._quality_scores = _read_only(value)

    @property
    def listener(self) -> Optional[CalibratorListener]:
        return self._listener

    @listener.setter
    def listener(self, value: Optional[CalibratorListener]) -> None:
        self._check_not_running()
        self._listener = value

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> EstimatorConfig:
        """Copy of the current configuration."""
        return replace(self._config)

    @config.setter
    def config(self, value: EstimatorConfig) -> None:
        self._check_not_running()
        value = replace(value)
        value.validate()
        self._config = value

    def _set_config(self, **changes) -> None:
        self._check_not_running()
        updated = replace(self._config, **changes)
        updated.validate()
        self._config = updated

    @property
    def confidence(self) -> float:
        return self._config.confidence

    @confidence.setter
    def confidence(self, value: float) -> None:
        self._set_config(confidence=value)

    @property
    def max_iterations(self) -> int:
        return self._config.max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        self._set_config(max_iterations=value)

    @property
    def progress_delta(self) -> float:
        return self._config.progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float) -> None:
        self._set_config(progress_delta=value)

    @property
    def threshold(self) -> Optional[float]:
        """Inlier threshold (m/s²); None for LMedS and PROMedS."""
        if not self._method.uses_threshold:
            return None
        return self._config.threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        self._set_config(threshold=value)

    @property
    def stop_threshold(self) -> Optional[float]:
        """Median stop threshold ((m/s²)²); None for RANSAC, MSAC and PROSAC."""
        if self._method.uses_threshold:
            return None
        return self._config.stop_threshold

    @stop_threshold.setter
    def stop_threshold(self, value: float) -> None:
        self._set_config(stop_threshold=value)

    @property
    def refine_result(self) -> bool:
        return self._config.refine_result

    @refine_result.setter
    def refine_result(self, value: bool) -> None:
        self._set_config(refine_result=bool(value))

    @property
    def keep_covariance(self) -> bool:
        return self._config.keep_covariance

    @keep_covariance.setter
    def keep_covariance(self, value: bool) -> None:
        self._set_config(keep_covariance=bool(value))

    @property
    def preliminary_subset_size(self) -> int:
        """Measurements per sampled subset."""
        if self._config.preliminary_subset_size is None:
            return self.minimum_required_measurements
        return self._config.preliminary_subset_size

    @preliminary_subset_size.setter
    def preliminary_subset_size(self, value: Optional[int]) -> None:
        self._set_config(preliminary_subset_size=value)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    @property
    def orientation_known(self) -> bool:
        """Whether every measurement carries an orientation (frame form)."""
        if not self._measurements:
            return True
        return all(m.has_orientation for m in self._measurements)

    @property
    def minimum_required_measurements(self) -> int:
        return minimum_measurements(self._common_axis_used, self.orientation_known)

    def _not_ready_reason(self) -> Optional[str]:
        if self._ecef_position is None:
            return "position is not set"
        if self._measurements is None:
            return "measurements are not set"

        minimum = self.minimum_required_measurements
        subset_size = self.preliminary_subset_size
        if subset_size < minimum:
            return f"preliminary_subset_size {subset_size} is below the minimum {minimum}"

        n = len(self._measurements)
        if n < max(minimum, subset_size):
            return f"{n} measurements given, at least {max(minimum, subset_size)} needed"

        if self.quality_scores_required:
            if self._quality_scores is None:
                return f"{self._method.name} needs quality scores"
            if len(self._quality_scores) != n:
                return (
                    f"{len(self._quality_scores)} quality scores given "
                    f"for {n} measurements"
                )
        return None

    @property
    def is_ready(self) -> bool:
        return self._not_ready_reason() is None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def result(self) -> Optional[EstimationResult]:
        return self._result

    @property
    def estimated_ma(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.estimated_ma

    @property
    def estimated_covariance(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.covariance

    @property
    def estimated_chi_sq(self) -> Optional[float]:
        return None if self._result is None else self._result.chi_sq

    @property
    def estimated_mse(self) -> Optional[float]:
        return None if self._result is None else self._result.mse

    @property
    def inliers(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.inliers

    def _estimated_entry(self, row: int, col: int) -> Optional[float]:
        if self._result is None:
            return None
        return float(self._result.estimated_ma[row, col])

    @property
    def estimated_sx(self) -> Optional[float]:
        return self._estimated_entry(0, 0)

    @property
    def estimated_sy(self) -> Optional[float]:
        return self._estimated_entry(1, 1)

    @property
    def estimated_sz(self) -> Optional[float]:
        return self._estimated_entry(2, 2)

    @property
    def estimated_mxy(self) -> Optional[float]:
        return self._estimated_entry(0, 1)

    @property
    def estimated_mxz(self) -> Optional[float]:
        return self._estimated_entry(0, 2)

    @property
    def estimated_myx(self) -> Optional[float]:
        return self._estimated_entry(1, 0)

    @property
    def estimated_myz(self) -> Optional[float]:
        return self._estimated_entry(1, 2)

    @property
    def estimated_mzx(self) -> Optional[float]:
        return self._estimated_entry(2, 0)

    @property
    def estimated_mzy(self) -> Optional[float]:
        return self._estimated_entry(2, 1)

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def calibrate(self) -> EstimationResult:
        """
        Run the robust search and the final refinement.

        Returns:
            EstimationResult of this run (also kept in ``result``).

        Raises:
            LockedError: If a run is already in progress on this instance.
            NotReadyError: If inputs are missing or inconsistent.
            EstimationFailedError: If no subset produced a valid hypothesis.
        """
        if not self._lock.acquire(blocking=False):
            raise LockedError("calibrate() called while a calibration is running")
        try:
            reason = self._not_ready_reason()
            if reason is not None:
                raise NotReadyError(f"Calibrator is not ready: {reason}")

            self._state = CalibratorState.RUNNING
            self._result = None
            try:
                result = self._run()
            except Exception:
                self._state = CalibratorState.FAILED
                raise
            self._result = result
            self._state = CalibratorState.SUCCEEDED
            return result
        finally:
            self._lock.release()

    def _run(self) -> EstimationResult:
        config = self._config
        listener = self._listener or CalibratorListener()

        model = MeasurementModel(
            self._measurements,
            self._ecef_position,
            bias=self._bias,
            common_axis_used=self._common_axis_used,
            initial_ma=self._initial_ma,
        )
        n = model.num_measurements
        subset_size = self.preliminary_subset_size
        rng = np.random.default_rng(self.random_state)
        strategy = build_strategy(
            self._method, n, subset_size, config, rng, self._quality_scores
        )

        logger.info(
            "Calibrating with %s (%s form): %d measurements, subsets of %d",
            self._method.name,
            model.form.value,
            n,
            subset_size,
        )
        listener.on_calibrate_start(self)

        best = None
        best_ma = None
        iteration = 0
        degenerate = 0
        last_progress = 0.0
        termination = strategy.termination

        while not termination.should_stop(iteration):
            if listener.is_cancelled(self):
                logger.info("Calibration cancelled after %d iterations", iteration)
                break

            subset = strategy.sampler.sample()
            iteration += 1

            try:
                ma = model.hypothesize(subset)
                consensus = strategy.scorer.score(model, ma, best)
            except SingularModelError as e:
                degenerate += 1
                logger.debug("Iteration %d: degenerate subset (%s)", iteration, e)
                consensus = None

            if consensus is not None and strategy.scorer.is_better(consensus, best):
                best, best_ma = consensus, ma
                termination.update(best)
                logger.debug(
                    "Iteration %d: new best fitness %.6g with %d inliers (limit %d)",
                    iteration,
                    best.fitness,
                    best.num_inliers,
                    termination.limit,
                )

            listener.on_calibrate_next_iteration(self, iteration)
            progress = termination.progress(iteration)
            if progress - last_progress >= config.progress_delta:
                last_progress = progress
                listener.on_calibrate_progress_change(self, progress)

        if best is None or best.num_inliers == 0:
            raise EstimationFailedError(
                f"No valid hypothesis after {iteration} iterations "
                f"({degenerate} degenerate subsets)"
            )

        inliers = np.flatnonzero(best.inlier_mask)
        refiner = NonlinearRefiner(
            model,
            max_iterations=config.refinement_max_iterations,
            tolerance=config.refinement_tolerance,
        )

        refined = False
        final = None
        if config.refine_result:
            try:
                final = refiner.refine(inliers, best_ma, config.keep_covariance)
                refined = True
            except SingularModelError as e:
                logger.warning("Refinement failed (%s); keeping the preliminary solution", e)
        if final is None:
            final = refiner.evaluate(inliers, best_ma, config.keep_covariance)

        result = EstimationResult(
            estimated_ma=final.ma,
            inliers=inliers,
            inlier_mask=best.inlier_mask,
            residuals=model.errors(final.ma),
            fitness=float(best.fitness),
            iterations=iteration,
            covariance=final.covariance if config.keep_covariance else None,
            chi_sq=final.chi_sq,
            mse=final.mse,
            refined=refined,
            converged=final.converged,
        )

        if last_progress < 1.0:
            listener.on_calibrate_progress_change(self, 1.0)
        listener.on_calibrate_end(self)

        logger.info(
            "Calibration finished after %d iterations: %d/%d inliers, mse=%.3e",
            iteration,
            len(inliers),
            n,
            final.mse,
        )
        return result
