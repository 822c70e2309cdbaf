"""
Hypothesis scoring and inlier classification.

Each scorer turns the residual magnitudes of a hypothesis into a Consensus
(fitness plus inlier set) and decides whether one consensus beats another.

    RANSAC   fitness = #{e ≤ t}                       higher is better
    MSAC     fitness = Σ min(e², t²)                  lower is better
    LMedS    fitness = median(e²)                     lower is better
    PROSAC   as RANSAC, evaluated in quality order with early rejection

For the median scorers the inlier set comes from the robust scale estimate
(Rousseeuw & Leroy):
    σ̂ = 1.4826 · (1 + 5 / (n - m)) · √median(e²)
    inlier ⇔ e ≤ max(2.5 σ̂, √stop_threshold)
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from imucal.calibration.measurement_model import MeasurementModel

# Consistency factor of the median absolute residual for Gaussian noise
MEDIAN_TO_SIGMA = 1.4826

# Inlier bound in robust standard deviations
INLIER_SIGMAS = 2.5


@dataclass
class Consensus:
    """Score of one hypothesis against all measurements.

    Attributes:
        fitness: Method-specific score.
        inlier_mask: Boolean mask over all measurements.
        errors: Residual magnitude per measurement.
        total_inlier_error: Sum of residual magnitudes over the inliers.
    """

    fitness: float
    inlier_mask: np.ndarray
    errors: np.ndarray
    total_inlier_error: float

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inlier_mask))


def _threshold_consensus(errors: np.ndarray, threshold: float, fitness: float) -> Consensus:
    mask = errors <= threshold
    return Consensus(
        fitness=fitness,
        inlier_mask=mask,
        errors=errors,
        total_inlier_error=float(np.sum(errors[mask])),
    )


class InlierCountScorer:
    """RANSAC score: number of residuals within ``threshold``."""

    def __init__(self, threshold: float):
        self.threshold = threshold

    def score(
        self, model: MeasurementModel, ma: np.ndarray, best: Optional[Consensus] = None
    ) -> Optional[Consensus]:
        errors = model.errors(ma)
        count = float(np.count_nonzero(errors <= self.threshold))
        return _threshold_consensus(errors, self.threshold, count)

    def is_better(self, candidate: Consensus, best: Optional[Consensus]) -> bool:
        if best is None:
            return True
        if candidate.fitness != best.fitness:
            return candidate.fitness > best.fitness
        return candidate.total_inlier_error < best.total_inlier_error


class EarlyExitInlierCountScorer(InlierCountScorer):
    """
    PROSAC score: inlier count, evaluated block by block in quality order.

    Evaluation stops as soon as the inliers found so far plus the
    measurements still unchecked cannot reach the best count; the hypothesis
    is then rejected (``score`` returns None).

    Args:
        threshold: Inlier residual bound (m/s²).
        ranking: Measurement indices by descending quality.
        block_size: Measurements evaluated between two rejection checks.
    """

    def __init__(self, threshold: float, ranking: np.ndarray, block_size: Optional[int] = None):
        super().__init__(threshold)
        self.ranking = np.asarray(ranking, dtype=int)
        n = len(self.ranking)
        self.block_size = block_size or max(1, int(np.ceil(n / 10)))

    def score(
        self, model: MeasurementModel, ma: np.ndarray, best: Optional[Consensus] = None
    ) -> Optional[Consensus]:
        n = len(self.ranking)
        errors = np.empty(n)
        count = 0
        for start in range(0, n, self.block_size):
            block = self.ranking[start:start + self.block_size]
            block_errors = model.errors(ma, block)
            errors[block] = block_errors
            count += int(np.count_nonzero(block_errors <= self.threshold))

            remaining = n - (start + len(block))
            if best is not None and count + remaining < best.fitness:
                return None

        return _threshold_consensus(errors, self.threshold, float(count))


class TruncatedLossScorer:
    """MSAC score: sum of squared residuals truncated at ``threshold²``."""

    def __init__(self, threshold: float):
        self.threshold = threshold

    def score(
        self, model: MeasurementModel, ma: np.ndarray, best: Optional[Consensus] = None
    ) -> Optional[Consensus]:
        errors = model.errors(ma)
        loss = float(np.sum(np.minimum(errors**2, self.threshold**2)))
        return _threshold_consensus(errors, self.threshold, loss)

    def is_better(self, candidate: Consensus, best: Optional[Consensus]) -> bool:
        return best is None or candidate.fitness < best.fitness


class MedianScorer:
    """
    LMedS score: median of the squared residuals over all measurements.

    Args:
        subset_size: Measurements per hypothesis (m), used in the finite
            sample correction of the robust scale.
        stop_threshold: Median squared residual at which the search stops.
            Its square root is also the smallest inlier bound, so noise-free
            data does not collapse the inlier set to the sampled subset.
    """

    def __init__(self, subset_size: int, stop_threshold: float):
        self.subset_size = subset_size
        self.stop_threshold = stop_threshold

    def score(
        self, model: MeasurementModel, ma: np.ndarray, best: Optional[Consensus] = None
    ) -> Optional[Consensus]:
        errors = model.errors(ma)
        median = float(np.median(errors**2))
        bound = self.inlier_bound(median, len(errors))
        return _threshold_consensus(errors, bound, median)

    def inlier_bound(self, median: float, n: int) -> float:
        correction = 1.0 + 5.0 / max(n - self.subset_size, 1)
        sigma = MEDIAN_TO_SIGMA * correction * np.sqrt(median)
        return max(INLIER_SIGMAS * sigma, np.sqrt(self.stop_threshold))

    def is_better(self, candidate: Consensus, best: Optional[Consensus]) -> bool:
        return best is None or candidate.fitness < best.fitness
