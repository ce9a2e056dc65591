from pydantic import BaseModel, Field, field_validator


class ObjectiveConfig(BaseModel):
    """
    Scoring policy and corpus execution settings shared by all stage objectives.

    Attributes:
        detection_beta (float): F-beta weight for the detection stage, favours recall (> 1).
        shape_fit_beta (float): F-beta weight for the shape-fit stage, favours precision (< 1).
        max_workers (int): Worker threads used to fan the corpus out per ground-truth file.
        aggregate_by_file (bool): Average per-file means instead of all items equally.
    """

    detection_beta: float = Field(2.0, description="F-beta weight for detection")
    shape_fit_beta: float = Field(0.5, gt=0, description="F-beta weight for shape fitting")
    max_workers: int = Field(1, ge=1, description="Parallel corpus workers")
    aggregate_by_file: bool = Field(False, description="Mean over ground-truth files")

    class Config:
        extra = "forbid"

    @field_validator('detection_beta')
    @classmethod
    def detection_favours_recall(cls, v: float) -> float:
        if v <= 1.0:
            raise ValueError("detection_beta must be > 1 (detection favours recall)")
        return v

    @field_validator('shape_fit_beta')
    @classmethod
    def shape_fit_favours_precision(cls, v: float) -> float:
        if v >= 1.0:
            raise ValueError("shape_fit_beta must be < 1 (shape fitting favours precision)")
        return v
