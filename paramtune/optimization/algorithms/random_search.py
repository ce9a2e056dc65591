from typing import Optional
import numpy as np

from paramtune.configs.optimizer import OptimizerConfig
from utils.logger import get_logger
from .base import BaseOptimizer, Objective

logger = get_logger(__name__)


class RandomSearchOptimizer(BaseOptimizer):
    def __init__(self, dimension_count: int, config: Optional[OptimizerConfig] = None):
        """
        Initialize RandomSearchOptimizer.

        Args:
            dimension_count: Number of dimensions of the unit cube
            config: Optimizer budget; the seed makes runs reproducible
        """
        super().__init__(dimension_count, config)
        self.rng = np.random.RandomState(self.config.seed)

    def suggest_query(self) -> np.ndarray:
        """
        Sample a query uniformly from the unit cube.
        """
        return self.rng.uniform(0.0, 1.0, size=self.dimension_count)

    def optimize(self, objective: Objective) -> np.ndarray:
        """
        Evaluate the full budget of uniformly sampled queries.

        Args:
            objective: Function to minimize

        Returns:
            Best query found
        """
        self.history.clear()
        logger.info(f"Starting random search: {self.dimension_count} dimensions, {self.get_total_trials()} trials")

        for _ in range(self.get_total_trials()):
            query = self.suggest_query()
            self.record(query, float(objective(query)))

        return self.best_point()

    def reset(self):
        """
        Reset the optimizer to its initial state.
        Useful for running multiple optimization runs.
        """
        self.history.clear()
        self.rng = np.random.RandomState(self.config.seed)
