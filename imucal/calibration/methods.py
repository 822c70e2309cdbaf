"""
Per-method strategy bundles.

Each robust method is a combination of a sampler, a scorer and a
termination policy. The orchestrator asks ``build_strategy`` for the bundle
of its method and runs the same loop for all of them.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np

from imucal.calibration.config import EstimatorConfig, RobustMethod
from imucal.calibration.samplers import ProgressiveSampler, UniformSampler
from imucal.calibration.scorers import (
    EarlyExitInlierCountScorer,
    InlierCountScorer,
    MedianScorer,
    TruncatedLossScorer,
)
from imucal.calibration.termination import (
    AdaptiveTermination,
    FixedTermination,
    ProsacTermination,
)


@dataclass
class Strategy:
    """Sampler, scorer and termination policy of one run."""

    sampler: Any
    scorer: Any
    termination: Any


def _ransac(n, m, config, quality_scores, rng):
    return Strategy(
        sampler=UniformSampler(n, m, rng),
        scorer=InlierCountScorer(config.threshold),
        termination=AdaptiveTermination(config.confidence, config.max_iterations, m, n),
    )


def _msac(n, m, config, quality_scores, rng):
    return Strategy(
        sampler=UniformSampler(n, m, rng),
        scorer=TruncatedLossScorer(config.threshold),
        termination=AdaptiveTermination(config.confidence, config.max_iterations, m, n),
    )


def _lmeds(n, m, config, quality_scores, rng):
    return Strategy(
        sampler=UniformSampler(n, m, rng),
        scorer=MedianScorer(m, config.stop_threshold),
        termination=FixedTermination(
            config.confidence, config.max_iterations, m, config.stop_threshold
        ),
    )


def _prosac(n, m, config, quality_scores, rng):
    sampler = ProgressiveSampler(quality_scores, m, config.max_iterations, rng)
    return Strategy(
        sampler=sampler,
        scorer=EarlyExitInlierCountScorer(config.threshold, sampler.ranking),
        termination=ProsacTermination(
            config.confidence, config.max_iterations, m, sampler.ranking
        ),
    )


def _promeds(n, m, config, quality_scores, rng):
    termination = FixedTermination(
        config.confidence, config.max_iterations, m, config.stop_threshold
    )
    # The fixed limit is known up front, so the prefix grows to the whole
    # population by the last iteration the search will actually run
    return Strategy(
        sampler=ProgressiveSampler(quality_scores, m, termination.limit, rng),
        scorer=MedianScorer(m, config.stop_threshold),
        termination=termination,
    )


STRATEGY_BUILDERS: Dict[RobustMethod, Callable[..., Strategy]] = {
    RobustMethod.RANSAC: _ransac,
    RobustMethod.MSAC: _msac,
    RobustMethod.LMEDS: _lmeds,
    RobustMethod.PROSAC: _prosac,
    RobustMethod.PROMEDS: _promeds,
}


def build_strategy(
    method: RobustMethod,
    n: int,
    subset_size: int,
    config: EstimatorConfig,
    rng: np.random.Generator,
    quality_scores: Optional[np.ndarray] = None,
) -> Strategy:
    """
    Assemble the strategies of ``method`` for ``n`` measurements.

    Raises:
        ValueError: If a progressive method gets no quality scores.
    """
    if method.uses_quality_scores and quality_scores is None:
        raise ValueError(f"{method.name} needs quality scores")
    return STRATEGY_BUILDERS[method](n, subset_size, config, quality_scores, rng)
