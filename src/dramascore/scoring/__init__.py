"""Deterministic scoring for DramaScore."""

from .keywords import KeywordTable, get_keywords
from .aggregate import AnalysisScoreResult, aggregate_scores, apply_redline_override

__all__ = [
    "KeywordTable", "get_keywords",
    "AnalysisScoreResult", "aggregate_scores", "apply_redline_override",
]
