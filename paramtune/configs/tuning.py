from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from .objective import ObjectiveConfig
from .optimizer import OptimizerConfig


class DeepLocalizerPaths(BaseModel):
    """Model and parameter files of the optional learned detection filter."""
    model_path: str
    param_path: str


class TuningConfig(BaseModel):
    """
    Configuration for a complete tuning run.

    Attributes:
        data_folder (Path): Folder holding ground-truth files, images and optional settings files.
        optimize_mean (bool): Tune once over all ground-truth files instead of once per file.
        deep_localizer (DeepLocalizerPaths, optional): Enables the learned detection filter.
        optimizer (OptimizerConfig): Optimizer budget.
        objective (ObjectiveConfig): Scoring policy.
        pipeline_factory (str): 'module:attribute' returning the PipelineFactory.
        evaluator_factory (str): 'module:attribute' building an evaluator from a parsed ground-truth document.
    """

    data_folder: Path
    optimize_mean: bool = Field(False, description="Optimize the mean over all files")
    deep_localizer: Optional[DeepLocalizerPaths] = None
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)
    objective: ObjectiveConfig = Field(default_factory=ObjectiveConfig)
    pipeline_factory: Optional[str] = Field(None, description="Dotted path to the pipeline factory")
    evaluator_factory: Optional[str] = Field(None, description="Dotted path to the evaluator factory")

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def validate_factories(self) -> "TuningConfig":
        for name in ("pipeline_factory", "evaluator_factory"):
            value = getattr(self, name)
            if value is not None and ":" not in value:
                raise ValueError(f"{name} must look like 'package.module:attribute', got '{value}'")
        return self
