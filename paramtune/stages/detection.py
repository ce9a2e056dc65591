"""
Detection stage objective: preprocessor + localizer, scored with a recall-weighted F-score.
"""

from pathlib import Path
from typing import Dict, Optional

import numpy as np

from paramtune.configs.tuning import DeepLocalizerPaths
from paramtune.evaluation.results import DetectionOutcome, EvaluationResult, FScoreResult
from paramtune.evaluation.scoring import detection_score
from paramtune.optimization.feasibility import FeasibilityGuard, FeasibilityRule
from paramtune.optimization.search_space.parameter import ParameterKind
from paramtune.optimization.search_space.space import ParameterSpace
from .base import StageObjective
from .chain import StageChain
from .protocols import DETECTION, GroundTruthEvaluator, PipelineStage
from .settings import TypedSettings

PREPROCESSOR = "preprocessor"
LOCALIZER = "localizer"

DETECTION_DIMENSIONS = 15
DEEP_LOCALIZER_TAG_SIZE = 100


def default_detection_space(deep_localizer: bool = False) -> ParameterSpace:
    """Default limits of the localizer and preprocessor parameters."""
    space = ParameterSpace()

    space.register("binary_threshold", 10, 50, ParameterKind.INTEGER, LOCALIZER)
    space.register("first_dilation_num_iterations", 1, 5, ParameterKind.INTEGER, LOCALIZER)
    space.register("first_dilation_size", 1, 10, ParameterKind.INTEGER, LOCALIZER)
    space.register("erosion_size", 10, 40, ParameterKind.INTEGER, LOCALIZER)
    space.register("second_dilation_size", 1, 5, ParameterKind.INTEGER, LOCALIZER)
    space.register("min_num_pixels", 1, 200, ParameterKind.INTEGER, LOCALIZER)
    space.register("max_num_pixels", 1, 200, ParameterKind.INTEGER, LOCALIZER)
    if deep_localizer:
        space.register("deeplocalizer_probability_threshold", 0., 1., ParameterKind.REAL, LOCALIZER)

    space.register("opt_frame_size", 25, 500, ParameterKind.INTEGER, PREPROCESSOR)
    space.register("opt_average_contrast_value", 0, 255, ParameterKind.REAL, PREPROCESSOR)
    space.register("comb_min_size", 0, 150, ParameterKind.INTEGER, PREPROCESSOR)
    space.register("comb_max_size", 0, 150, ParameterKind.INTEGER, PREPROCESSOR)
    space.register("comb_threshold", 0, 255, ParameterKind.REAL, PREPROCESSOR)
    space.register("honey_std_dev", 0, 255, ParameterKind.REAL, PREPROCESSOR)
    space.register("honey_frame_size", 5, 50, ParameterKind.INTEGER, PREPROCESSOR)
    space.register("honey_average_value", 0, 255, ParameterKind.REAL, PREPROCESSOR)

    return space


class DetectionChain(StageChain):
    """Preprocessor and localizer instances owned by one objective or worker."""

    def __init__(self, preprocessor: PipelineStage, localizer: PipelineStage, beta: float):
        self.preprocessor = preprocessor
        self.localizer = localizer
        self.beta = beta

    def load_settings(self, settings: Dict[str, TypedSettings]) -> None:
        self.preprocessor.load_settings(settings[PREPROCESSOR])
        self.localizer.load_settings(settings[LOCALIZER])

    def score(self, evaluator: GroundTruthEvaluator, frame_index: int, image: np.ndarray, image_path: Path) -> FScoreResult:
        preprocessed = self.preprocessor.process(image)
        detections = self.localizer.process(preprocessed)

        evaluator.evaluate_stage(DETECTION, frame_index, detections)
        matches = evaluator.get_stage_results(DETECTION)

        return detection_score(
            matches.num_ground_truth,
            matches.num_true_positives,
            matches.num_false_positives,
            self.beta
        )


class DetectionObjective(StageObjective):
    """
    Tunes preprocessor and localizer together.

    The objective is 1 - F-beta with beta > 1, so missed objects cost more than
    spurious ones: later stages can still reject a false detection but never
    recover a missed one.
    """

    stage = "detection"
    sections = (PREPROCESSOR, LOCALIZER)
    worst_value = 1.0

    def __init__(self, *args, deep_localizer: Optional[DeepLocalizerPaths] = None, **kwargs):
        self.deep_localizer = deep_localizer
        super().__init__(*args, **kwargs)

    def default_space(self) -> ParameterSpace:
        return default_detection_space(deep_localizer=self.deep_localizer is not None)

    def expected_dimensions(self) -> int:
        return DETECTION_DIMENSIONS + (1 if self.deep_localizer is not None else 0)

    def default_guard(self) -> FeasibilityGuard:
        return FeasibilityGuard([FeasibilityRule.ordered("min_num_pixels", "max_num_pixels")])

    def default_settings(self) -> Dict[str, TypedSettings]:
        settings = super().default_settings()
        settings[PREPROCESSOR].update({"comb_enabled": True, "honey_enabled": True})

        if self.deep_localizer is not None:
            settings[LOCALIZER].update({
                "deeplocalizer_filter": True,
                "deeplocalizer_model_file": self.deep_localizer.model_path,
                "deeplocalizer_param_file": self.deep_localizer.param_path,
                "tag_size": DEEP_LOCALIZER_TAG_SIZE,
            })
        return settings

    def create_chain(self) -> DetectionChain:
        return DetectionChain(
            self.pipeline.preprocessor(),
            self.pipeline.localizer(),
            self.config.detection_beta
        )

    def make_outcome(self, result: EvaluationResult, settings: Dict[str, TypedSettings]) -> DetectionOutcome:
        return DetectionOutcome(result=result, settings=settings)

    def describe_result(self, result: EvaluationResult) -> str:
        return f"F{self.config.detection_beta:g}-Score: {result.score:.4f}"
