"""
Runs a stage chain over every corpus item and aggregates the per-item results.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from paramtune.stages.chain import StageChain
from utils.logger import get_logger
from .corpus import Corpus, GroundTruthGroup
from .results import EvaluationResult
from .scoring import mean_result

logger = get_logger(__name__)


class CorpusEvaluator:
    """
    Executes stage chains across a corpus.

    Upstream stages are re-executed on every run with the chain's current
    settings; only the raw images and ground truth are reused. The evaluator of a
    ground-truth file is reset after each frame so results never leak between items.

    With max_workers > 1 the ground-truth files fan out to a thread pool. Each file
    then needs its own chain; results are collected back in corpus order.
    """

    def __init__(self, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    @property
    def parallel(self) -> bool:
        return self.max_workers > 1

    def chains_needed(self, corpus: Corpus) -> int:
        """Number of independent chains a run over this corpus requires."""
        return max(1, len(corpus.groups)) if self.parallel else 1

    def run(self, chains: Sequence[StageChain], corpus: Corpus) -> List[EvaluationResult]:
        """Score every corpus item, results in corpus order."""
        return [result for results in self.run_by_group(chains, corpus) for result in results]

    def run_by_group(self, chains: Sequence[StageChain], corpus: Corpus) -> List[List[EvaluationResult]]:
        """
        Score every corpus item, keeping results grouped by ground-truth file.

        Args:
            chains: One chain for serial runs, one per ground-truth file for parallel runs
            corpus: Corpus to evaluate

        Returns:
            Per ground-truth file, the list of per-frame results
        """
        if not chains:
            raise ValueError("At least one stage chain is required")

        groups = corpus.groups

        if not self.parallel or len(groups) <= 1:
            return [self.evaluate_group(chains[0], group, corpus) for group in groups]

        if len(chains) < len(groups):
            raise ValueError(
                f"Parallel evaluation needs one chain per ground-truth file ({len(groups)}), got {len(chains)}"
            )

        logger.debug(f"Evaluating {len(groups)} ground-truth files on {self.max_workers} workers")
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(self.evaluate_group, chain, group, corpus)
                for chain, group in zip(chains, groups)
            ]
            return [future.result() for future in futures]

    def evaluate_group(self, chain: StageChain, group: GroundTruthGroup, corpus: Corpus) -> List[EvaluationResult]:
        """Score the frames of one ground-truth file in order."""
        evaluator = group.evaluator
        results = []

        for frame_index, image_path in enumerate(group.image_paths):
            try:
                result = chain.score(evaluator, frame_index, corpus.image(image_path), image_path)
            finally:
                evaluator.reset()
            results.append(result)

        return results

    @staticmethod
    def summarize(results_by_group: Sequence[Sequence[EvaluationResult]], by_file: bool = False) -> EvaluationResult:
        """
        Aggregate per-frame results into one result.

        Args:
            results_by_group: Per ground-truth file, the per-frame results
            by_file: Average the per-file means instead of all frames equally

        Returns:
            Mean result
        """
        if by_file:
            file_means = [mean_result(results) for results in results_by_group if results]
            return mean_result(file_means)

        return mean_result([result for results in results_by_group for result in results])
