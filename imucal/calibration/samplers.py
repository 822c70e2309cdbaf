"""
Subset samplers for the robust estimators.

Uniform sampling draws every subset from the whole measurement set.
Progressive sampling (PROSAC, Chum & Matas 2005) ranks measurements by
quality and draws from a prefix of the ranking that grows with the
iteration count, so well-ranked measurements are tried first while the
whole population still becomes reachable by the iteration cap.

Growth function for subset size m, population N and T_N = max_iterations:
    T_m     = T_N · Π_{i=0}^{m-1} (m - i) / (N - i)
    T_{n+1} = T_n · (n + 1) / (n + 1 - m)
    T'_{n+1} = T'_n + ⌈T_{n+1} - T_n⌉,   T'_m = 1
"""

import numpy as np


class UniformSampler:
    """Draws ``subset_size`` distinct indices uniformly from ``range(n)``."""

    def __init__(self, n: int, subset_size: int, rng: np.random.Generator):
        if subset_size > n:
            raise ValueError(f"subset_size {subset_size} exceeds population {n}")
        self.n = n
        self.subset_size = subset_size
        self.rng = rng

    def sample(self) -> np.ndarray:
        return self.rng.choice(self.n, size=self.subset_size, replace=False)


class ProgressiveSampler:
    """
    Quality-guided sampler with a growing hypothesis-generation set.

    Args:
        quality_scores: One score per measurement; larger is better.
        subset_size: Number of measurements per subset (m).
        max_iterations: Iteration cap (T_N). Once reached, subsets are drawn
            from the whole population.
        rng: Random generator.

    Attributes:
        ranking: Measurement indices sorted by descending quality. Ties keep
            their input order.
        prefix_size: Current size n of the hypothesis-generation set.
    """

    def __init__(
        self,
        quality_scores: np.ndarray,
        subset_size: int,
        max_iterations: int,
        rng: np.random.Generator,
    ):
        scores = np.asarray(quality_scores, dtype=np.float64)
        if scores.ndim != 1:
            raise ValueError(f"quality_scores must be 1D, got shape {scores.shape}")
        n = len(scores)
        if subset_size > n:
            raise ValueError(f"subset_size {subset_size} exceeds population {n}")

        self.ranking = np.argsort(-scores, kind="stable")
        self.population = n
        self.subset_size = subset_size
        self.max_iterations = max_iterations
        self.rng = rng

        m = subset_size
        self.prefix_size = m
        self.iteration = 0
        self._t_n = float(max_iterations)
        for i in range(m):
            self._t_n *= (m - i) / (n - i)
        self._t_n_prime = 1.0

    def sample(self) -> np.ndarray:
        self.iteration += 1
        t = self.iteration
        m = self.subset_size
        n_total = self.population

        if t >= self.max_iterations:
            self.prefix_size = n_total
        elif t >= self._t_n_prime and self.prefix_size < n_total:
            n = self.prefix_size
            t_next = self._t_n * (n + 1) / (n + 1 - m)
            self._t_n_prime += np.ceil(t_next - self._t_n)
            self._t_n = t_next
            self.prefix_size = n + 1

        n = self.prefix_size
        if self._t_n_prime < t or n == m or t >= self.max_iterations:
            picks = self.rng.choice(n, size=m, replace=False)
        else:
            # Always include the newest member of the prefix
            picks = np.append(self.rng.choice(n - 1, size=m - 1, replace=False), n - 1)
        return self.ranking[picks]
