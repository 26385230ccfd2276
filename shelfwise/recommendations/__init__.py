"""Candidate expansion, scoring and the recommendation pipeline."""

from .expander import CandidateExpander
from .goodreads import GOODREADS_COLUMNS, load_goodreads_export, parse_rating
from .pipeline import RecommendationPipeline, RecommendationResult
from .scorer import RecommendationScorer, match_quality_label, score

__all__ = [
    "CandidateExpander",
    "GOODREADS_COLUMNS",
    "load_goodreads_export",
    "parse_rating",
    "RecommendationPipeline",
    "RecommendationResult",
    "RecommendationScorer",
    "match_quality_label",
    "score",
]
