"""
Scoring of pipeline output against ground truth and corpus loading.
"""

from .results import DecodeOutcome, DetectionOutcome, DistanceResult, FScoreResult, ShapeFitOutcome
from .scoring import best_result, decode_score, detection_score, fbeta, mean_result
from .corpus import Corpus, GroundTruthGroup

__all__ = [
    'FScoreResult',
    'DistanceResult',
    'DetectionOutcome',
    'ShapeFitOutcome',
    'DecodeOutcome',
    'fbeta',
    'detection_score',
    'decode_score',
    'mean_result',
    'best_result',
    'Corpus',
    'GroundTruthGroup'
]
