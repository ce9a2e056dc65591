"""
Black-box optimizers over the unit cube.
"""

from typing import Optional

from paramtune.configs.optimizer import OptimizerConfig
from .base import BaseOptimizer, TrialRecord
from .random_search import RandomSearchOptimizer
from .bayesian import BayesianOptimizer


def build_optimizer(dimension_count: int, config: Optional[OptimizerConfig] = None) -> BaseOptimizer:
    """Select the optimizer implementation for config.sampler."""
    config = config or OptimizerConfig()
    if config.sampler == "random":
        return RandomSearchOptimizer(dimension_count, config)
    return BayesianOptimizer(dimension_count, config)


__all__ = [
    'BaseOptimizer',
    'TrialRecord',
    'RandomSearchOptimizer',
    'BayesianOptimizer',
    'build_optimizer'
]
