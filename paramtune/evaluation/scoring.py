"""
Scoring functions turning ground-truth match counts into evaluation results.

Every function here returns a defined value for degenerate input (no ground
truth, no detections, no decoded matches), because the optimizer needs a
scalar on every call. Only aggregating an empty list is an error.
"""

import math
from typing import Iterable, Optional, Sequence, Tuple
import numpy as np

from .results import DistanceResult, EvaluationResult, FScoreResult

DETECTION_BETA = 2.0
SHAPE_FIT_BETA = 0.5


def fbeta(recall: float, precision: float, beta: float) -> float:
    """
    Weighted harmonic mean of precision and recall.

    Returns NaN when both recall and precision are zero.
    """
    beta_sq = beta ** 2
    denominator = beta_sq * precision + recall
    if denominator == 0:
        return math.nan
    return (1 + beta_sq) * (precision * recall) / denominator


def detection_score(num_ground_truth: int, num_true_positives: int, num_false_positives: int, beta: float) -> FScoreResult:
    """
    Compute recall, precision and F-beta from confusion counts.

    Args:
        num_ground_truth: Number of annotated objects on the frame
        num_true_positives: Detections matched to an annotation
        num_false_positives: Detections without a matching annotation
        beta: Recall weight (> 1 favours recall, < 1 favours precision)

    Returns:
        FScoreResult, the zero result when the score is undefined
    """
    if min(num_ground_truth, num_true_positives, num_false_positives) < 0:
        raise ValueError("Confusion counts must be non-negative")

    recall = num_true_positives / num_ground_truth if num_ground_truth else 0.0
    detected = num_true_positives + num_false_positives
    precision = num_true_positives / detected if detected else 0.0

    score = fbeta(recall, precision, beta)
    if math.isnan(score):
        return FScoreResult.zero()

    return FScoreResult(
        score=float(np.clip(score, 0.0, 1.0)),
        recall=float(np.clip(recall, 0.0, 1.0)),
        precision=float(np.clip(precision, 0.0, 1.0)),
    )


def normalized_symbol_distance(decoded: Sequence, expected: Sequence) -> float:
    """
    Fraction of mismatching symbols between a decoded and an annotated code.

    Codes of different length count every missing or surplus symbol as a mismatch.
    """
    length = max(len(decoded), len(expected))
    if length == 0:
        return 0.0
    mismatches = sum(1 for a, b in zip(decoded, expected) if a != b)
    mismatches += abs(len(decoded) - len(expected))
    return mismatches / length


def mean_decode_distance(matches: Iterable[Tuple[Sequence, Sequence]]) -> Optional[float]:
    """Mean normalized distance over (decoded, expected) pairs, None if there are no matches."""
    distances = [normalized_symbol_distance(decoded, expected) for decoded, expected in matches]
    if not distances:
        return None
    return float(np.mean(distances))


def decode_score(average_distance: Optional[float]) -> DistanceResult:
    """Wrap an item's average normalized distance, no matches maps to the worst distance."""
    if average_distance is None or math.isnan(average_distance):
        return DistanceResult.worst()
    return DistanceResult(distance=float(np.clip(average_distance, 0.0, 1.0)))


def mean_result(results: Sequence[EvaluationResult]) -> EvaluationResult:
    """
    Arithmetic mean of a list of results, field by field.

    Args:
        results: Non-empty list of results of a single kind

    Returns:
        Mean result of the same kind
    """
    if not results:
        raise ValueError("Cannot aggregate an empty list of evaluation results")

    if all(isinstance(result, FScoreResult) for result in results):
        return FScoreResult(
            score=float(np.mean([r.score for r in results])),
            recall=float(np.mean([r.recall for r in results])),
            precision=float(np.mean([r.precision for r in results])),
        )
    if all(isinstance(result, DistanceResult) for result in results):
        return DistanceResult(distance=float(np.mean([r.distance for r in results])))

    raise TypeError("Cannot aggregate a mix of F-score and distance results")


def best_result(results: Sequence[EvaluationResult]) -> EvaluationResult:
    """Best of N according to the results' ordering."""
    if not results:
        raise ValueError("Cannot select the best of an empty list of evaluation results")
    return sorted(results)[0]
