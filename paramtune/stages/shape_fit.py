"""
Shape-fit stage objective: ellipse fitter over fixed detections, scored with a precision-weighted F-score.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np

from paramtune.evaluation.results import EvaluationResult, FScoreResult, ShapeFitOutcome
from paramtune.evaluation.scoring import detection_score
from paramtune.optimization.feasibility import ordering_guard, FeasibilityGuard
from paramtune.optimization.search_space.parameter import ParameterKind
from paramtune.optimization.search_space.space import ParameterSpace
from .base import StageObjective
from .chain import StageChain
from .protocols import DETECTION, SHAPE_FIT, GroundTruthEvaluator, PipelineStage
from .settings import TypedSettings

SHAPE_FITTER = "shape_fitter"

SHAPE_FIT_DIMENSIONS = 11


def default_shape_fit_space() -> ParameterSpace:
    space = ParameterSpace()

    space.register("canny_initial_high", 25, 150, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("canny_values_distance", 10, 100, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("canny_mean_min", 5, 12, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("canny_mean_max", 13, 30, ParameterKind.INTEGER, SHAPE_FITTER)

    space.register("min_major_axis", 20, 45, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("max_major_axis", 46, 70, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("min_minor_axis", 20, 45, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("max_minor_axis", 46, 70, ParameterKind.INTEGER, SHAPE_FITTER)

    space.register("threshold_edge_pixels", 15, 50, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("threshold_best_vote", 1500, 4000, ParameterKind.INTEGER, SHAPE_FITTER)
    space.register("threshold_vote", 500, 1400, ParameterKind.INTEGER, SHAPE_FITTER)

    return space


class ShapeFitChain(StageChain):
    """Shape fitter instance scoring fixed upstream detections."""

    def __init__(self, shape_fitter: PipelineStage, detections_by_image: Mapping[Path, Any], beta: float):
        self.shape_fitter = shape_fitter
        self.detections_by_image = detections_by_image
        self.beta = beta

    def load_settings(self, settings: Dict[str, TypedSettings]) -> None:
        self.shape_fitter.load_settings(settings[SHAPE_FITTER])

    def score(self, evaluator: GroundTruthEvaluator, frame_index: int, image: np.ndarray, image_path: Path) -> FScoreResult:
        # The upstream detections are shared between evaluations, the fitter gets its own copy
        detections = copy.deepcopy(self.detections_by_image[image_path])

        evaluator.evaluate_stage(DETECTION, frame_index, detections)
        fitted = self.shape_fitter.process(detections)
        evaluator.evaluate_stage(SHAPE_FIT, frame_index, fitted)

        matches = evaluator.get_stage_results(SHAPE_FIT)
        return detection_score(
            matches.num_ground_truth,
            matches.num_true_positives,
            matches.num_false_positives,
            self.beta
        )


class ShapeFitObjective(StageObjective):
    """
    Tunes the ellipse fitter on the detections of an already tuned detection stage.

    The objective is 1 - F-beta with beta < 1: a wrongly fitted shape costs more
    than a dropped detection.
    """

    stage = "shape_fit"
    sections = (SHAPE_FITTER,)
    worst_value = 1.0

    def __init__(self, corpus, pipeline, detections_by_image: Mapping[Path, Any], **kwargs):
        missing = [path for path in corpus.image_paths() if path not in detections_by_image]
        if missing:
            raise KeyError(f"No upstream detections for {len(missing)} image(s), e.g. {missing[0]}")
        self.detections_by_image = detections_by_image
        super().__init__(corpus, pipeline, **kwargs)

    def default_space(self) -> ParameterSpace:
        return default_shape_fit_space()

    def expected_dimensions(self) -> int:
        return SHAPE_FIT_DIMENSIONS

    def default_guard(self) -> FeasibilityGuard:
        return ordering_guard([
            ("canny_mean_min", "canny_mean_max"),
            ("min_major_axis", "max_major_axis"),
            ("min_minor_axis", "max_minor_axis"),
        ])

    def create_chain(self) -> ShapeFitChain:
        return ShapeFitChain(self.pipeline.shape_fitter(), self.detections_by_image, self.config.shape_fit_beta)

    def make_outcome(self, result: EvaluationResult, settings: Dict[str, TypedSettings]) -> ShapeFitOutcome:
        return ShapeFitOutcome(result=result, settings=settings)

    def describe_result(self, result: EvaluationResult) -> str:
        return f"F{self.config.shape_fit_beta:g}-Score: {result.score:.4f}"
