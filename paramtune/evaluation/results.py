"""
Evaluation result value types and per-stage tuning outcomes.
"""

from functools import total_ordering
from typing import Annotated, Dict, Literal, Union
from pydantic import BaseModel, Field

from paramtune.stages.settings import TypedSettings


@total_ordering
class FScoreResult(BaseModel):
    """
    Score of a detection-style stage.

    Ordering puts the better result first: a < b when a has the higher score,
    so sorted(results)[0] is the best one.
    """
    score: float = Field(..., ge=0.0, le=1.0)
    recall: float = Field(..., ge=0.0, le=1.0)
    precision: float = Field(..., ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @classmethod
    def zero(cls) -> "FScoreResult":
        return cls(score=0.0, recall=0.0, precision=0.0)

    @property
    def objective(self) -> float:
        """Value in the optimizer's minimization convention."""
        return 1.0 - self.score

    def __lt__(self, other: "FScoreResult") -> bool:
        if not isinstance(other, FScoreResult):
            return NotImplemented
        return self.score > other.score


@total_ordering
class DistanceResult(BaseModel):
    """Normalized decode distance of an item or a corpus, lower is better."""
    distance: float = Field(..., ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @classmethod
    def worst(cls) -> "DistanceResult":
        return cls(distance=1.0)

    @property
    def objective(self) -> float:
        return self.distance

    def __lt__(self, other: "DistanceResult") -> bool:
        if not isinstance(other, DistanceResult):
            return NotImplemented
        return self.distance < other.distance


EvaluationResult = Union[FScoreResult, DistanceResult]


class DetectionOutcome(BaseModel):
    stage: Literal["detection"] = "detection"
    result: FScoreResult
    settings: Dict[str, TypedSettings]


class ShapeFitOutcome(BaseModel):
    stage: Literal["shape_fit"] = "shape_fit"
    result: FScoreResult
    settings: Dict[str, TypedSettings]


class DecodeOutcome(BaseModel):
    stage: Literal["grid_fit"] = "grid_fit"
    result: DistanceResult
    settings: Dict[str, TypedSettings]


StageOutcome = Annotated[
    Union[DetectionOutcome, ShapeFitOutcome, DecodeOutcome],
    Field(discriminator="stage"),
]


def summary_line(outcome: StageOutcome) -> str:
    """One-line human readable summary of a stage outcome."""
    result = outcome.result
    if isinstance(result, FScoreResult):
        return f"F-Score: {result.score:.4f}  Recall: {result.recall:.4f}  Precision: {result.precision:.4f}"
    return f"Avg. normalized distance: {result.distance:.4f}"
