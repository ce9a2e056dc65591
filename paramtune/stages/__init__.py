"""
Per-stage objectives and the interfaces of the pipeline stages they drive.

Import the objectives from their modules (paramtune.stages.detection, ...);
this package only exposes the leaf types other packages build on.
"""

from .settings import TypedSettings
from .protocols import (
    DECODE,
    DETECTION,
    GRID_FIT,
    SHAPE_FIT,
    DecodeMatches,
    GroundTruthEvaluator,
    PipelineFactory,
    PipelineStage,
    StageMatches,
)

__all__ = [
    'TypedSettings',
    'PipelineStage',
    'GroundTruthEvaluator',
    'PipelineFactory',
    'StageMatches',
    'DecodeMatches',
    'DETECTION',
    'SHAPE_FIT',
    'GRID_FIT',
    'DECODE'
]
