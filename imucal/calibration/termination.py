"""
Stopping rules of the robust search.

Number of subsets needed so that, with probability p, at least one is free
of outliers (inlier ratio w, subset size m):

    k = ⌈log(1 - p) / log(1 - w^m)⌉

RANSAC and MSAC recompute k from the inlier ratio of the best hypothesis.
PROSAC applies it to each prefix of the quality ranking whose inlier count
could not have occurred by chance, and keeps the smallest. LMedS and PROMedS
have no inlier ratio during the search, so k is fixed from a worst-case
outlier ratio and the search stops early when the median is small enough.
"""

import numpy as np
from scipy import stats

from imucal.calibration.scorers import Consensus

# Probability that an outlier is consistent with a wrong hypothesis
PROSAC_BETA = 0.01

# Accepted probability that an inlier count arose by chance
PROSAC_PSI = 0.05

# Outlier ratio assumed by the median-based estimators
WORST_CASE_OUTLIER_RATIO = 0.5


def required_iterations(
    inlier_ratio: float, subset_size: int, confidence: float, max_iterations: int
) -> int:
    """
    Subsets to draw to reach ``confidence``, capped at ``max_iterations``.

    Args:
        inlier_ratio: Fraction of inliers w in [0, 1].
        subset_size: Measurements per subset m.
        confidence: Desired probability p in (0, 1).
        max_iterations: Upper bound of the result.

    Returns:
        Integer in [1, max_iterations].
    """
    good = inlier_ratio**subset_size
    if good >= 1.0:
        return 1
    if good <= np.finfo(float).tiny:
        return int(max_iterations)

    denominator = np.log1p(-good)
    if denominator >= 0.0:
        return int(max_iterations)
    k = np.ceil(np.log(1.0 - confidence) / denominator)
    return int(min(max(k, 1), max_iterations))


class AdaptiveTermination:
    """Limit recomputed from the inlier ratio of each new best hypothesis."""

    def __init__(self, confidence: float, max_iterations: int, subset_size: int, n: int):
        self.confidence = confidence
        self.max_iterations = max_iterations
        self.subset_size = subset_size
        self.n = n
        self.limit = max_iterations

    def update(self, best: Consensus) -> None:
        inlier_ratio = best.num_inliers / self.n
        self.limit = required_iterations(
            inlier_ratio, self.subset_size, self.confidence, self.max_iterations
        )

    def should_stop(self, iteration: int) -> bool:
        return iteration >= self.limit

    def progress(self, iteration: int) -> float:
        return min(1.0, max(0.0, iteration / self.limit))


class ProsacTermination(AdaptiveTermination):
    """
    PROSAC stopping rule: non-randomness plus maximality.

    For every prefix size n of the quality ranking the inlier count I_n must
    exceed the count a random hypothesis would reach with probability ψ:

        I_min(n) = m + binom.isf(ψ, n - m, β) + 1

    Among the prefixes that pass, the smallest k_n (computed with the prefix
    inlier ratio I_n / n) becomes the limit. The whole population always
    takes part, which reduces to the RANSAC rule.
    """

    def __init__(
        self,
        confidence: float,
        max_iterations: int,
        subset_size: int,
        ranking: np.ndarray,
        beta: float = PROSAC_BETA,
        psi: float = PROSAC_PSI,
    ):
        super().__init__(confidence, max_iterations, subset_size, len(ranking))
        self.ranking = np.asarray(ranking, dtype=int)

        m = subset_size
        self._prefix_sizes = np.arange(m + 1, self.n + 1)
        self._min_inliers = (
            m + stats.binom.isf(psi, self._prefix_sizes - m, beta) + 1
        )

    def update(self, best: Consensus) -> None:
        ranked_inliers = best.inlier_mask[self.ranking]
        cumulative = np.cumsum(ranked_inliers)

        limit = required_iterations(
            cumulative[-1] / self.n, self.subset_size, self.confidence, self.max_iterations
        )
        if len(self._prefix_sizes) > 0:
            counts = cumulative[self._prefix_sizes - 1]
            non_random = counts >= self._min_inliers
            for n, count in zip(self._prefix_sizes[non_random], counts[non_random]):
                k_n = required_iterations(
                    count / n, self.subset_size, self.confidence, self.max_iterations
                )
                limit = min(limit, k_n)
        self.limit = limit


class FixedTermination:
    """Worst-case iteration count with an early stop on a small median."""

    def __init__(
        self,
        confidence: float,
        max_iterations: int,
        subset_size: int,
        stop_threshold: float,
        outlier_ratio: float = WORST_CASE_OUTLIER_RATIO,
    ):
        self.stop_threshold = stop_threshold
        self.limit = required_iterations(
            1.0 - outlier_ratio, subset_size, confidence, max_iterations
        )
        self.stopped = False

    def update(self, best: Consensus) -> None:
        if best.fitness <= self.stop_threshold:
            self.stopped = True

    def should_stop(self, iteration: int) -> bool:
        return self.stopped or iteration >= self.limit

    def progress(self, iteration: int) -> float:
        if self.stopped:
            return 1.0
        return min(1.0, max(0.0, iteration / self.limit))
