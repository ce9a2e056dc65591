from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence
import numpy as np
from pydantic import BaseModel

from paramtune.configs.optimizer import OptimizerConfig
from utils.logger import get_logger

logger = get_logger(__name__)

Objective = Callable[[np.ndarray], float]


class TrialRecord(BaseModel):
    """
    One evaluated query of an optimization run.
    """
    trial_number: int
    query: List[float]
    objective_value: float


class BaseOptimizer(ABC):
    """
    Abstract base class for the black-box optimizers.

    An optimizer only knows the dimensionality of the unit cube it samples and
    calls back into the objective with one query vector per trial. Lower
    objective values are better.
    """

    def __init__(self, dimension_count: int, config: Optional[OptimizerConfig] = None):
        if dimension_count < 1:
            raise ValueError("The search space needs at least one dimension")
        self.dimension_count = dimension_count
        self.config = config or OptimizerConfig()
        self.history: List[TrialRecord] = []

    @abstractmethod
    def optimize(self, objective: Objective) -> np.ndarray:
        """
        Run the full trial budget against the objective and return the best point.
        """
        pass

    def get_total_trials(self) -> int:
        """
        Total number of trials the optimizer runs.
        """
        return self.config.total_trials

    def record(self, query: Sequence[float], value: float) -> TrialRecord:
        """
        Store a finished trial and report progress every n_iter_relearn trials.
        """
        record = TrialRecord(
            trial_number=len(self.history),
            query=[float(x) for x in query],
            objective_value=float(value)
        )
        self.history.append(record)

        if len(self.history) % self.config.n_iter_relearn == 0:
            best = self.get_best_result()
            logger.info(
                f"Trial {len(self.history)}/{self.get_total_trials()}: "
                f"best objective so far {best.objective_value:.6f} (trial {best.trial_number})"
            )
        return record

    def best_point(self) -> np.ndarray:
        best = self.get_best_result()
        if best is None:
            raise RuntimeError("No trial has been evaluated yet")
        return np.asarray(best.query, dtype=float)

    def get_best_result(self) -> Optional[TrialRecord]:
        """
        Best result seen so far, the earliest one on ties.
        """
        if not self.history:
            return None
        return min(self.history, key=lambda x: x.objective_value)

    def get_optimization_history(self) -> List[TrialRecord]:
        """
        Complete list of all evaluated queries in evaluation order.
        """
        return self.history.copy()

    def get_sorted_results(self) -> List[TrialRecord]:
        """
        Complete list of all evaluated queries sorted by objective value (best first).
        """
        return sorted(self.history, key=lambda x: x.objective_value)
