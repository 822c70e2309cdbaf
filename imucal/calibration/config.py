"""Robust estimation methods and their runtime configuration."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RobustMethod(Enum):
    """Robust estimation method used to reject outlier measurements.

    Attributes:
        RANSAC: Random sample consensus, maximizes the inlier count.
        LMEDS: Least median of squares, no threshold needed.
        MSAC: M-estimator sample consensus, truncated quadratic cost.
        PROSAC: Progressive sample consensus, quality-guided RANSAC.
        PROMEDS: Progressive least median of squares.
    """

    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @property
    def uses_threshold(self) -> bool:
        return self in (RobustMethod.RANSAC, RobustMethod.MSAC, RobustMethod.PROSAC)

    @property
    def uses_quality_scores(self) -> bool:
        return self in (RobustMethod.PROSAC, RobustMethod.PROMEDS)


@dataclass
class EstimatorConfig:
    """Tunable parameters of a robust calibration run.

    Attributes:
        confidence: Probability that at least one sampled subset is free of
            outliers. Must lie in (0, 1).
        max_iterations: Hard cap on the number of sampled subsets.
        progress_delta: Minimum progress change (0 to 1) between two
            progress notifications.
        threshold: Residual magnitude (m/s²) below which a measurement is an
            inlier. Used by RANSAC, MSAC and PROSAC only.
        stop_threshold: Median squared residual ((m/s²)²) at which LMedS and
            PROMedS stop early. The default accepts a median residual of
            1e-2 m/s², which is loose for low-noise sensors: a hypothesis a
            few parts per thousand off can end the search after a handful of
            iterations. Use a value near (3σ)² for noise σ.
        refine_result: Whether the best hypothesis is refined over its
            inliers with Levenberg-Marquardt.
        keep_covariance: Whether the parameter covariance is kept.
        preliminary_subset_size: Size of the sampled subsets. None uses the
            minimum the measurement model needs.
        refinement_max_iterations: Iteration cap of the refiner.
        refinement_tolerance: Relative cost decrease at which the refiner
            stops.
    """

    DEFAULT_CONFIDENCE = 0.99
    DEFAULT_MAX_ITERATIONS = 5000
    DEFAULT_PROGRESS_DELTA = 0.05
    DEFAULT_THRESHOLD = 1e-2
    DEFAULT_STOP_THRESHOLD = 1e-4
    DEFAULT_REFINEMENT_MAX_ITERATIONS = 50
    DEFAULT_REFINEMENT_TOLERANCE = 1e-12

    confidence: float = DEFAULT_CONFIDENCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    progress_delta: float = DEFAULT_PROGRESS_DELTA
    threshold: float = DEFAULT_THRESHOLD
    stop_threshold: float = DEFAULT_STOP_THRESHOLD
    refine_result: bool = True
    keep_covariance: bool = True
    preliminary_subset_size: Optional[int] = None
    refinement_max_iterations: int = DEFAULT_REFINEMENT_MAX_ITERATIONS
    refinement_tolerance: float = DEFAULT_REFINEMENT_TOLERANCE

    def validate(self) -> None:
        """Check every field range.

        Raises:
            ValueError: If any value is out of range.
        """
        if not 0.0 < self.confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be a positive integer, got {self.max_iterations}"
            )
        if not 0.0 <= self.progress_delta <= 1.0:
            raise ValueError(
                f"progress_delta must be in [0, 1], got {self.progress_delta}"
            )
        if not self.threshold > 0.0:
            raise ValueError(f"threshold must be positive, got {self.threshold}")
        if not self.stop_threshold >= 0.0:
            raise ValueError(
                f"stop_threshold must be non-negative, got {self.stop_threshold}"
            )
        if self.preliminary_subset_size is not None and self.preliminary_subset_size < 1:
            raise ValueError(
                "preliminary_subset_size must be positive, "
                f"got {self.preliminary_subset_size}"
            )
        if self.refinement_max_iterations < 1:
            raise ValueError(
                "refinement_max_iterations must be positive, "
                f"got {self.refinement_max_iterations}"
            )
        if not self.refinement_tolerance >= 0.0:
            raise ValueError(
                f"refinement_tolerance must be non-negative, got {self.refinement_tolerance}"
            )
