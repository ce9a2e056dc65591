"""
Feasibility rules over mapped parameter values.

The optimizer samples the unit cube and cannot express constraints between
dimensions, so objectives reject infeasible configurations before running the
corpus. Rules always see typed values: integer rounding can move a value to
the other side of a bound.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from utils.logger import get_logger
from .search_space.space import ParameterSpace

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeasibilityRule:
    """Predicate over the mapped values of the named parameters."""
    names: Sequence[str]
    predicate: Callable[..., bool]
    description: str = ""

    @classmethod
    def ordered(cls, lower: str, upper: str) -> "FeasibilityRule":
        """Rule requiring the mapped value of `lower` to be <= that of `upper`."""
        return cls((lower, upper), lambda low, high: low <= high, f"{lower} <= {upper}")

    def holds(self, values: Dict[str, Any]) -> bool:
        return bool(self.predicate(*(values[name] for name in self.names)))


@dataclass
class FeasibilityGuard:
    """Conjunction of feasibility rules. A guard without rules accepts everything."""
    rules: List[FeasibilityRule] = field(default_factory=list)

    def add_rule(self, rule: FeasibilityRule) -> "FeasibilityGuard":
        self.rules.append(rule)
        return self

    def validate_against(self, space: ParameterSpace) -> None:
        """Raise if a rule references a parameter the space does not define."""
        for rule in self.rules:
            missing = [name for name in rule.names if name not in space]
            if missing:
                raise ValueError(f"Feasibility rule '{rule.description}' references unknown parameters {missing}")

    def check(self, values: Dict[str, Any]) -> bool:
        """
        Check mapped values against every rule.

        Args:
            values: Typed values keyed by parameter name

        Returns:
            True if all rules hold
        """
        for rule in self.rules:
            if not rule.holds(values):
                logger.debug(f"Infeasible configuration, violated rule: {rule.description}")
                return False
        return True

    def violations(self, values: Dict[str, Any]) -> List[str]:
        return [rule.description for rule in self.rules if not rule.holds(values)]

    def __len__(self) -> int:
        return len(self.rules)


def ordering_guard(pairs: Optional[Sequence[Sequence[str]]] = None) -> FeasibilityGuard:
    """Build a guard of `lower <= upper` rules from (lower, upper) name pairs."""
    return FeasibilityGuard([FeasibilityRule.ordered(lower, upper) for lower, upper in pairs or []])
