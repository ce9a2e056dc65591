"""
Parameter definition and value kinds for tuning search spaces using Pydantic.
"""

from enum import Enum
from typing import Optional, Union
import numpy as np
from pydantic import BaseModel, Field, model_validator


class ParameterKind(str, Enum):
    """Value kinds a normalized query value can be mapped to."""
    INTEGER = "integer"
    REAL = "real"
    ODD_INTEGER = "odd_integer"


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (numpy rounds halves to even)."""
    return int(np.sign(value) * np.floor(np.abs(value) + 0.5))


class ParameterDescriptor(BaseModel):
    """
    Definition of a single tunable pipeline parameter.

    Args:
        name: Name of the parameter, unique within a ParameterSpace
        low: Lower bound of the mapped value
        high: Upper bound of the mapped value
        kind: Value kind (integer, real, odd integer)
        section: Settings bag the mapped value is written into

    Examples:
        # Integer parameter
        ParameterDescriptor(name="binary_threshold", low=10, high=50, kind=ParameterKind.INTEGER)

        # Odd kernel size for adaptive thresholding
        ParameterDescriptor(name="adaptive_block_size", low=3, high=61, kind=ParameterKind.ODD_INTEGER)
    """

    name: str
    low: float
    high: float
    kind: ParameterKind = ParameterKind.REAL
    section: Optional[str] = Field(
        None,
        description="Name of the TypedSettings bag this parameter belongs to"
    )

    model_config = {"frozen": True}

    @model_validator(mode='after')
    def validate_bounds(self):
        """Validate the domain after initialization."""
        if not np.isfinite(self.low) or not np.isfinite(self.high):
            raise ValueError(f"Parameter '{self.name}' requires finite bounds")
        if self.low > self.high:
            raise ValueError(f"Parameter '{self.name}': low ({self.low}) must be <= high ({self.high})")
        if self.kind == ParameterKind.ODD_INTEGER and not self._has_odd_value():
            raise ValueError(f"Parameter '{self.name}': no odd integer in [{self.low}, {self.high}]")
        return self

    def _has_odd_value(self) -> bool:
        first = int(np.ceil(self.low))
        if first % 2 == 0:
            first += 1
        return first <= self.high

    def linear(self, raw: float) -> float:
        """Unrounded mapping of a normalized value onto [low, high]."""
        return self.low + raw * (self.high - self.low)

    def map_value(self, raw: float) -> Union[int, float]:
        """
        Map a normalized query value in [0, 1] to a typed value.

        Integer kinds round to the nearest integer. The odd-integer kind moves an even
        rounding result up when it lies strictly below the unrounded value and down
        otherwise; if that step leaves the domain the other neighbour is taken.

        Args:
            raw: Normalized value supplied by the optimizer

        Returns:
            Typed parameter value
        """
        value = self.linear(raw)

        if self.kind == ParameterKind.REAL:
            return float(value)

        rounded = round_half_away(value)

        if self.kind == ParameterKind.INTEGER:
            return rounded

        if rounded % 2:
            return rounded
        candidate = rounded + 1 if rounded < value else rounded - 1
        if not self.low <= candidate <= self.high:
            candidate = rounded - 1 if candidate > rounded else rounded + 1
        return candidate

    def validate_value(self, value) -> bool:
        """
        Check whether a typed value lies in this parameter's domain.

        Args:
            value: Value to validate

        Returns:
            True if value is valid for this parameter
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not self.low <= value <= self.high:
            return False
        if self.kind == ParameterKind.INTEGER:
            return float(value).is_integer()
        if self.kind == ParameterKind.ODD_INTEGER:
            return float(value).is_integer() and int(value) % 2 == 1
        return True
