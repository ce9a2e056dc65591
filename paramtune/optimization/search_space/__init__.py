from .parameter import ParameterDescriptor, ParameterKind
from .space import ParameterSpace

__all__ = ['ParameterDescriptor', 'ParameterKind', 'ParameterSpace']
