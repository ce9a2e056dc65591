from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

import numpy as np

from paramtune.evaluation.results import EvaluationResult
from .protocols import GroundTruthEvaluator
from .settings import TypedSettings


class StageChain(ABC):
    """
    Owned pipeline stage instances that turn one corpus item into an evaluation result.

    A chain is reloaded explicitly with fresh settings before every corpus run and is
    never shared between workers.
    """

    @abstractmethod
    def load_settings(self, settings: Dict[str, TypedSettings]) -> None:
        """
        Push the settings bags into the owned stage instances.
        """
        pass

    @abstractmethod
    def score(
        self,
        evaluator: GroundTruthEvaluator,
        frame_index: int,
        image: np.ndarray,
        image_path: Path
    ) -> EvaluationResult:
        """
        Run the stages on one item and read its result from the evaluator.

        The caller resets the evaluator afterwards.
        """
        pass
