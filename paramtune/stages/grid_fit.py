"""
Grid-fit stage objective: grid fitter + decoder over fixed shape-fit output, scored by decode distance.
"""

import copy
import sys
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np

from paramtune.evaluation.results import DecodeOutcome, DistanceResult, EvaluationResult
from paramtune.evaluation.scoring import decode_score
from paramtune.optimization.search_space.parameter import ParameterKind
from paramtune.optimization.search_space.space import ParameterSpace
from .base import StageObjective
from .chain import StageChain
from .protocols import DECODE, DETECTION, GRID_FIT, SHAPE_FIT, GroundTruthEvaluator, PipelineStage
from .settings import TypedSettings

GRID_FITTER = "grid_fitter"

GRID_FIT_DIMENSIONS = 12

# Smallest positive double, the lower bound of parameters that must stay > 0
TINY = sys.float_info.min


def default_grid_fit_space() -> ParameterSpace:
    space = ParameterSpace()

    space.register("err_func_alpha_inner", 0., 1., ParameterKind.REAL, GRID_FITTER)
    space.register("err_func_alpha_outer", 0., 1., ParameterKind.REAL, GRID_FITTER)
    space.register("err_func_alpha_variance", 0., 1., ParameterKind.REAL, GRID_FITTER)
    space.register("err_func_alpha_outer_edge", 0., 1., ParameterKind.REAL, GRID_FITTER)
    space.register("err_func_alpha_inner_edge", 0., 1., ParameterKind.REAL, GRID_FITTER)

    space.register("adaptive_block_size", 3, 61, ParameterKind.ODD_INTEGER, GRID_FITTER)
    space.register("adaptive_c", 0., 255., ParameterKind.REAL, GRID_FITTER)

    space.register("gradient_error_threshold", 0., 1., ParameterKind.REAL, GRID_FITTER)

    space.register("eps_angle", TINY, 10., ParameterKind.REAL, GRID_FITTER)
    space.register("eps_pos", 1, 5, ParameterKind.INTEGER, GRID_FITTER)
    space.register("eps_scale", TINY, 10., ParameterKind.REAL, GRID_FITTER)
    space.register("alpha", TINY, 100., ParameterKind.REAL, GRID_FITTER)

    return space


class GridFitChain(StageChain):
    """Grid fitter and decoder instances scoring fixed upstream shape fits."""

    def __init__(self, grid_fitter: PipelineStage, decoder: PipelineStage, shape_fits_by_image: Mapping[Path, Any]):
        self.grid_fitter = grid_fitter
        self.decoder = decoder
        self.shape_fits_by_image = shape_fits_by_image

    def load_settings(self, settings: Dict[str, TypedSettings]) -> None:
        self.grid_fitter.load_settings(settings[GRID_FITTER])

    def score(self, evaluator: GroundTruthEvaluator, frame_index: int, image: np.ndarray, image_path: Path) -> DistanceResult:
        shapes = copy.deepcopy(self.shape_fits_by_image[image_path])

        # The evaluator matches grids through the detections and shapes they came from
        evaluator.evaluate_stage(DETECTION, frame_index, shapes)
        evaluator.evaluate_stage(SHAPE_FIT, frame_index, shapes)

        grids = self.grid_fitter.process(shapes)
        evaluator.evaluate_stage(GRID_FIT, frame_index, grids)
        decoded = self.decoder.process(grids)
        evaluator.evaluate_stage(DECODE, frame_index, decoded)

        return decode_score(evaluator.get_decode_results().average_normalized_distance)


class GridFitObjective(StageObjective):
    """
    Tunes the grid fitter by the normalized symbol distance of the decoded codes.

    The distance is already a lower-is-better measure and is returned unchanged.
    """

    stage = "grid_fit"
    sections = (GRID_FITTER,)
    worst_value = sys.float_info.max

    def __init__(self, corpus, pipeline, shape_fits_by_image: Mapping[Path, Any], **kwargs):
        missing = [path for path in corpus.image_paths() if path not in shape_fits_by_image]
        if missing:
            raise KeyError(f"No upstream shape fits for {len(missing)} image(s), e.g. {missing[0]}")
        self.shape_fits_by_image = shape_fits_by_image
        super().__init__(corpus, pipeline, **kwargs)

    def default_space(self) -> ParameterSpace:
        return default_grid_fit_space()

    def expected_dimensions(self) -> int:
        return GRID_FIT_DIMENSIONS

    def create_chain(self) -> GridFitChain:
        return GridFitChain(self.pipeline.grid_fitter(), self.pipeline.decoder(), self.shape_fits_by_image)

    def make_outcome(self, result: EvaluationResult, settings: Dict[str, TypedSettings]) -> DecodeOutcome:
        return DecodeOutcome(result=result, settings=settings)

    def describe_result(self, result: EvaluationResult) -> str:
        return f"Avg. normalized distance: {result.distance:.4f}"
