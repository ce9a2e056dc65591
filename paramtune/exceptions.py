"""
Error types raised by paramtune.

Scoring conditions the optimizer has to survive (NaN F-scores, missing decode
distances, infeasible queries) are never raised; they map to defined values.
"""


class ParamTuneError(Exception):
    """Base class for all paramtune errors."""


class DuplicateParameterError(ParamTuneError, ValueError):
    """A parameter name was registered twice in a strict ParameterSpace."""


class FrozenSpaceError(ParamTuneError, RuntimeError):
    """A parameter was registered after the space was frozen."""


class CorpusLoadError(ParamTuneError, IOError):
    """An image or ground-truth file of the corpus could not be read."""


class TaskDiscoveryError(ParamTuneError, IOError):
    """The data folder is invalid or the output folder cannot be created."""


class EmptyCorpusError(TaskDiscoveryError):
    """A task resolves to no images; no stage can be tuned on it."""
