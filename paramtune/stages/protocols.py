"""
Interfaces of the external collaborators: vision pipeline stages and the ground-truth evaluator.

Their algorithms live outside this package; objectives only rely on the
methods declared here.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, runtime_checkable

from .settings import TypedSettings

DETECTION = "detection"
SHAPE_FIT = "shape_fit"
GRID_FIT = "grid_fit"
DECODE = "decode"


@runtime_checkable
class PipelineStage(Protocol):
    """One phase of the vision pipeline, reconfigured through load_settings."""

    def load_settings(self, settings: TypedSettings) -> None:
        ...

    def process(self, data: Any) -> Any:
        ...


@dataclass
class StageMatches:
    """Match counts of one evaluated pipeline stage on one frame."""
    tagged_ground_truth: Sequence[Any] = field(default_factory=list)
    true_positives: Sequence[Any] = field(default_factory=list)
    false_positives: Sequence[Any] = field(default_factory=list)

    @property
    def num_ground_truth(self) -> int:
        return len(self.tagged_ground_truth)

    @property
    def num_true_positives(self) -> int:
        return len(self.true_positives)

    @property
    def num_false_positives(self) -> int:
        return len(self.false_positives)


@dataclass
class DecodeMatches:
    """Decode quality of one frame; None when nothing could be matched."""
    average_normalized_distance: Optional[float] = None


@runtime_checkable
class GroundTruthEvaluator(Protocol):
    """
    Matcher between pipeline output and the annotations of one ground-truth file.

    The evaluator accumulates state per frame and has to be reset after every
    frame's results were read.
    """

    def evaluate_stage(self, stage: str, frame_index: int, output: Any) -> None:
        ...

    def get_stage_results(self, stage: str) -> StageMatches:
        ...

    def get_decode_results(self) -> DecodeMatches:
        ...

    def reset(self) -> None:
        ...


EvaluatorFactory = Callable[[Dict[str, Any]], GroundTruthEvaluator]


@dataclass
class PipelineFactory:
    """
    Constructors for fresh pipeline stage instances.

    Each objective builds its own instances so that parallel workers never share
    the mutable state load_settings/process leave behind.
    """
    preprocessor: Callable[[], PipelineStage]
    localizer: Callable[[], PipelineStage]
    shape_fitter: Callable[[], PipelineStage]
    grid_fitter: Callable[[], PipelineStage]
    decoder: Callable[[], PipelineStage]
    # Drops detections the shape fitter found no candidate for before grid fitting
    shape_fit_filter: Optional[Callable[[Any], Any]] = None
