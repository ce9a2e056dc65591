import optuna
import numpy as np
from typing import Optional

from paramtune.configs.optimizer import OptimizerConfig
from utils.logger import get_logger
from .base import BaseOptimizer, Objective

logger = get_logger(__name__)


class BayesianOptimizer(BaseOptimizer):
    """
    Model-based optimizer on the unit cube backed by an optuna study.

    The first n_init_samples trials are sampled independently, the remaining
    n_iterations are proposed by the sampler's surrogate model (Gaussian process
    for 'gp', Parzen estimators for 'tpe').
    """

    def __init__(
        self,
        dimension_count: int,
        config: Optional[OptimizerConfig] = None,
        sampler: Optional[optuna.samplers.BaseSampler] = None
    ):
        super().__init__(dimension_count, config)
        self.sampler = sampler or self._create_sampler()
        self.study: Optional[optuna.study.Study] = None

    def _create_sampler(self) -> optuna.samplers.BaseSampler:
        if self.config.sampler == "gp":
            return optuna.samplers.GPSampler(
                seed=self.config.seed,
                n_startup_trials=self.config.n_init_samples
            )
        if self.config.sampler == "tpe":
            return optuna.samplers.TPESampler(
                seed=self.config.seed,
                n_startup_trials=self.config.n_init_samples
            )
        raise ValueError(f"Unsupported sampler for BayesianOptimizer: {self.config.sampler}")

    def _suggest_query(self, trial: optuna.Trial) -> np.ndarray:
        return np.array([
            trial.suggest_float(f"x{index}", 0.0, 1.0)
            for index in range(self.dimension_count)
        ])

    def optimize(self, objective: Objective) -> np.ndarray:
        self.study = optuna.create_study(direction="minimize", sampler=self.sampler)
        self.history.clear()

        logger.info(
            f"Starting {self.config.sampler} optimization: {self.dimension_count} dimensions, "
            f"{self.config.n_init_samples} initial samples, {self.config.n_iterations} iterations"
        )

        for _ in range(self.get_total_trials()):
            trial = self.study.ask()
            query = self._suggest_query(trial)
            value = float(objective(query))
            self.study.tell(trial, value)
            self.record(query, value)

        return self.best_point()
