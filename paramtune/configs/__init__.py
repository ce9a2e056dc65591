from .objective import ObjectiveConfig
from .optimizer import OptimizerConfig
from .tuning import DeepLocalizerPaths, TuningConfig

__all__ = [
    'ObjectiveConfig',
    'OptimizerConfig',
    'DeepLocalizerPaths',
    'TuningConfig'
]
