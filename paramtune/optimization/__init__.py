"""
Optimization module: the search space adapter, feasibility rules and black-box optimizers.

The stage-chaining TuningOrchestrator lives in paramtune.optimization.orchestrator.
"""

from .algorithms import BaseOptimizer, TrialRecord, build_optimizer
from .feasibility import FeasibilityGuard, FeasibilityRule
from .search_space.parameter import ParameterDescriptor, ParameterKind
from .search_space.space import ParameterSpace

__all__ = [
    'BaseOptimizer',
    'TrialRecord',
    'build_optimizer',
    'FeasibilityGuard',
    'FeasibilityRule',
    'ParameterDescriptor',
    'ParameterKind',
    'ParameterSpace'
]
