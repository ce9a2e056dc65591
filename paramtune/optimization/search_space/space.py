"""
Search space management: maps the optimizer's normalized query vector onto named, typed pipeline parameters.
"""

from typing import Dict, List, Any, Optional, Sequence
import numpy as np

from paramtune.exceptions import DuplicateParameterError, FrozenSpaceError
from paramtune.stages.settings import TypedSettings
from utils.logger import get_logger
from .parameter import ParameterDescriptor, ParameterKind

logger = get_logger(__name__)


class ParameterSpace:
    """
    Ordered registry of tunable parameters.

    Every registered parameter receives the next free index into the optimizer's
    query vector, so the indices always form the range [0, dimension_count()).
    Registering a name twice keeps the first registration; this lets default
    limit tables be built idempotently. A strict space raises instead.

    Example:
        space = ParameterSpace()
        space.register("binary_threshold", 10, 50, ParameterKind.INTEGER, section="localizer")
        space.register("honey_std_dev", 0, 255, ParameterKind.REAL, section="preprocessor")
        space.map_query([0.5, 0.0])  # {'binary_threshold': 30, 'honey_std_dev': 0.0}
    """

    def __init__(self, parameters: Optional[List[ParameterDescriptor]] = None, strict: bool = False):
        """
        Initialize the space, optionally with an initial list of descriptors.

        Args:
            parameters: Descriptors to register in order
            strict: Raise DuplicateParameterError on duplicate names instead of ignoring them
        """
        self.strict = strict
        self._frozen = False
        self._descriptors: Dict[str, ParameterDescriptor] = {}
        self._index_by_name: Dict[str, int] = {}

        for parameter in parameters or []:
            self.add_parameter(parameter)

    def register(
        self,
        name: str,
        low: float,
        high: float,
        kind: ParameterKind = ParameterKind.REAL,
        section: Optional[str] = None
    ) -> int:
        """
        Register a parameter and return its query index.

        Args:
            name: Parameter name
            low: Lower bound of the mapped value
            high: Upper bound of the mapped value
            kind: Value kind
            section: Settings bag the value is written into

        Returns:
            Index of the parameter in the query vector
        """
        if name in self._index_by_name and not self.strict:
            # Check for duplicates before validating, the first registration wins either way
            self._check_not_frozen(name)
            logger.debug(f"Parameter '{name}' already registered, keeping the first limits")
            return self._index_by_name[name]
        return self.add_parameter(
            ParameterDescriptor(name=name, low=low, high=high, kind=kind, section=section)
        )

    def add_parameter(self, parameter: ParameterDescriptor) -> int:
        """
        Add a descriptor to the space.

        Args:
            parameter: Descriptor to add

        Returns:
            Index of the parameter in the query vector
        """
        self._check_not_frozen(parameter.name)

        if parameter.name in self._index_by_name:
            if self.strict:
                raise DuplicateParameterError(f"Parameter '{parameter.name}' already exists in search space")
            logger.debug(f"Parameter '{parameter.name}' already registered, keeping the first limits")
            return self._index_by_name[parameter.name]

        index = len(self._descriptors)
        self._descriptors[parameter.name] = parameter
        self._index_by_name[parameter.name] = index
        return index

    def _check_not_frozen(self, name: str):
        if self._frozen:
            raise FrozenSpaceError(f"Cannot register '{name}': the parameter space is frozen")

    def freeze(self) -> "ParameterSpace":
        """Make the space immutable. Returns the space for chaining."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def descriptor(self, name: str) -> ParameterDescriptor:
        """
        Get a descriptor by name.

        Args:
            name: Parameter name

        Returns:
            ParameterDescriptor object
        """
        if name not in self._descriptors:
            raise KeyError(f"Parameter '{name}' not found in search space")
        return self._descriptors[name]

    def index_of(self, name: str) -> int:
        if name not in self._index_by_name:
            raise KeyError(f"Parameter '{name}' not found in search space")
        return self._index_by_name[name]

    def names(self) -> List[str]:
        """Get parameter names in index order."""
        return list(self._descriptors.keys())

    def descriptors(self) -> List[ParameterDescriptor]:
        return list(self._descriptors.values())

    def dimension_count(self) -> int:
        """Get the dimensionality declared to the optimizer."""
        return len(self._descriptors)

    def map_value(self, name: str, raw: float) -> Any:
        """Map one normalized value of a named parameter to its typed value."""
        return self.descriptor(name).map_value(raw)

    def map_query(self, query: Sequence[float]) -> Dict[str, Any]:
        """
        Map a full query vector to typed values.

        Args:
            query: One normalized value per dimension, in index order

        Returns:
            Dict mapping parameter names to typed values
        """
        values = np.asarray(query, dtype=float).ravel()
        if values.shape[0] != self.dimension_count():
            raise ValueError(
                f"Query has {values.shape[0]} dimensions, the parameter space has {self.dimension_count()}"
            )

        # The optimizer works on [0, 1] but may hand back values a rounding error outside it
        values = np.clip(values, 0.0, 1.0)

        return {
            name: descriptor.map_value(float(values[index]))
            for index, (name, descriptor) in enumerate(self._descriptors.items())
        }

    def apply(self, mapped: Dict[str, Any], settings_by_section: Dict[str, TypedSettings]) -> Dict[str, TypedSettings]:
        """
        Write mapped values into their settings bags.

        Args:
            mapped: Typed values as returned by map_query
            settings_by_section: Settings bags keyed by section, modified in place

        Returns:
            The same settings bags
        """
        for name, value in mapped.items():
            section = self.descriptor(name).section
            if section not in settings_by_section:
                raise KeyError(f"No settings bag for section '{section}' of parameter '{name}'")
            settings_by_section[section].set_value(name, value)
        return settings_by_section

    def validate_configuration(self, values: Dict[str, Any]) -> bool:
        """
        Check whether a set of typed values is complete and within bounds.

        Args:
            values: Typed values keyed by parameter name

        Returns:
            True if every parameter is present and valid
        """
        if set(values.keys()) != set(self._descriptors.keys()):
            return False
        return all(self._descriptors[name].validate_value(value) for name, value in values.items())

    def get_bounds(self) -> Dict[str, tuple]:
        """
        Get bounds for all parameters.

        Returns:
            Dict mapping parameter names to (low, high) bounds
        """
        return {name: (param.low, param.high) for name, param in self._descriptors.items()}

    def __len__(self) -> int:
        """Get number of parameters in search space."""
        return len(self._descriptors)

    def __contains__(self, name: str) -> bool:
        return name in self._descriptors

    def __repr__(self) -> str:
        """String representation of search space."""
        param_info = [
            f"{name}: {param.kind.value}[{param.low}, {param.high}]"
            for name, param in self._descriptors.items()
        ]
        return f"ParameterSpace({', '.join(param_info)})"
