"""
Base class for per-stage objectives handed to the optimizer.
"""

import abc
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from paramtune.configs.objective import ObjectiveConfig
from paramtune.evaluation.corpus import Corpus
from paramtune.evaluation.corpus_evaluator import CorpusEvaluator
from paramtune.evaluation.results import EvaluationResult
from paramtune.optimization.feasibility import FeasibilityGuard
from paramtune.optimization.search_space.space import ParameterSpace
from utils.logger import get_logger
from .chain import StageChain
from .protocols import PipelineFactory
from .settings import TypedSettings

logger = get_logger(__name__)


class StageObjective(abc.ABC):
    """
    Adapter between the optimizer's query vectors and one pipeline stage.

    Every call of `evaluate` maps the query to typed values, rejects infeasible
    configurations cheaply, reloads the owned stage chains with fresh settings,
    scores the corpus and returns a value the optimizer minimizes.

    Subclasses define the stage's sections, default limits, feasibility rules,
    chain and worst value.

    Attributes:
        stage (str): Stage identifier used in outcomes and logs.
        sections (tuple): Settings bags the stage consumes.
        worst_value (float): Objective value of infeasible configurations.
    """

    stage: str = ""
    sections: Tuple[str, ...] = ()
    worst_value: float = 1.0

    def __init__(
        self,
        corpus: Corpus,
        pipeline: PipelineFactory,
        space: Optional[ParameterSpace] = None,
        guard: Optional[FeasibilityGuard] = None,
        config: Optional[ObjectiveConfig] = None,
        base_settings: Optional[Mapping[str, TypedSettings]] = None
    ):
        """
        Initialize the objective.

        Args:
            corpus: Loaded corpus, must not be empty
            pipeline: Constructors for the stage instances
            space: Parameter space, defaults to the stage's default limits
            guard: Feasibility rules, defaults to the stage's default rules
            config: Scoring policy and worker count
            base_settings: Fixed settings the mapped values are layered on
        """
        if corpus.is_empty():
            raise ValueError(f"Cannot tune the {self.stage} stage on an empty corpus")

        self.corpus = corpus
        self.pipeline = pipeline
        self.config = config or ObjectiveConfig()

        if space is None:
            space = self.default_space()
            assert space.dimension_count() == self.expected_dimensions(), (
                f"{self.stage}: default limits define {space.dimension_count()} parameters, "
                f"expected {self.expected_dimensions()}"
            )
        self.space = space.freeze()

        self.guard = guard if guard is not None else self.default_guard()
        self.guard.validate_against(self.space)

        self.base_settings = self.default_settings()
        for section, settings in (base_settings or {}).items():
            if section not in self.base_settings:
                raise KeyError(f"The {self.stage} stage has no settings section '{section}'")
            self.base_settings[section].update(settings.to_dict())

        self.corpus_evaluator = CorpusEvaluator(max_workers=self.config.max_workers)
        self._chains: List[StageChain] = [
            self.create_chain() for _ in range(self.corpus_evaluator.chains_needed(corpus))
        ]

        self.history: List[Tuple[np.ndarray, float]] = []

    @abc.abstractmethod
    def default_space(self) -> ParameterSpace:
        """Default parameter limits of the stage."""
        pass

    @abc.abstractmethod
    def expected_dimensions(self) -> int:
        """Number of dimensions the default limits define."""
        pass

    @abc.abstractmethod
    def create_chain(self) -> StageChain:
        """Build a chain with fresh stage instances."""
        pass

    @abc.abstractmethod
    def make_outcome(self, result: EvaluationResult, settings: Dict[str, TypedSettings]) -> Any:
        """Wrap a result and its settings into the stage's outcome type."""
        pass

    def default_guard(self) -> FeasibilityGuard:
        return FeasibilityGuard()

    def default_settings(self) -> Dict[str, TypedSettings]:
        return {section: TypedSettings(section=section) for section in self.sections}

    @property
    def dimension_count(self) -> int:
        return self.space.dimension_count()

    def settings_from(self, mapped: Dict[str, Any]) -> Dict[str, TypedSettings]:
        """Fresh settings bags: the base settings with the mapped values applied."""
        settings = {section: bag.copy_settings() for section, bag in self.base_settings.items()}
        return self.space.apply(mapped, settings)

    def settings_for(self, query: Sequence[float]) -> Dict[str, TypedSettings]:
        """Materialize a query (e.g. the optimizer's best point) into settings bags."""
        return self.settings_from(self.space.map_query(query))

    def is_feasible(self, query: Sequence[float]) -> bool:
        return self.guard.check(self.space.map_query(query))

    def to_objective(self, result: EvaluationResult) -> float:
        """Convert a result to the optimizer's minimization convention."""
        return float(result.objective)

    def evaluate_settings(self, settings: Dict[str, TypedSettings]) -> EvaluationResult:
        """
        Score a set of settings on the whole corpus.

        Args:
            settings: Settings bags keyed by section

        Returns:
            Aggregated result over the corpus
        """
        for chain in self._chains:
            chain.load_settings(settings)

        results = self.corpus_evaluator.run_by_group(self._chains, self.corpus)
        return self.corpus_evaluator.summarize(results, by_file=self.config.aggregate_by_file)

    def evaluate(self, query: Sequence[float]) -> float:
        """
        Objective function handed to the optimizer.

        Args:
            query: Normalized values in [0, 1], one per dimension

        Returns:
            Value to minimize
        """
        mapped = self.space.map_query(query)

        if not self.guard.check(mapped):
            logger.debug(f"{self.stage}: infeasible query {self.guard.violations(mapped)}")
            value = self.worst_value
        else:
            settings = self.settings_from(mapped)
            result = self.evaluate_settings(settings)
            value = self.to_objective(result)

            for bag in settings.values():
                logger.info(bag.describe())
            logger.info(f"{self.stage}: {self.describe_result(result)}")

        self.history.append((np.asarray(query, dtype=float).copy(), value))
        return value

    __call__ = evaluate

    def outcome_for(self, point: Sequence[float]) -> Any:
        """Re-materialize a point and score it on the corpus."""
        settings = self.settings_for(point)
        return self.make_outcome(self.evaluate_settings(settings), settings)

    def outcome_for_settings(self, settings: Mapping[str, TypedSettings]) -> Any:
        """Score settings that were not produced by the optimizer (e.g. loaded from disk)."""
        merged = {section: bag.copy_settings() for section, bag in self.base_settings.items()}
        for section, bag in settings.items():
            merged[section].update(bag.to_dict())
        return self.make_outcome(self.evaluate_settings(merged), merged)

    def describe_result(self, result: EvaluationResult) -> str:
        return str(result)
