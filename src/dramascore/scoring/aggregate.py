"""Score aggregation, grade mapping and the redline override."""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..core.models import AuditItem, Grade, ScoreBreakdown

RULESET_VERSION = 'v2.1.0-freeze-nodb'

DIMENSION_MAX = {
    'pay': 50,
    'story': 30,
    'market': 20,
    'potential': 10,
}
TOTAL_MAX = sum(DIMENSION_MAX.values())

# Descending (minimum total110, grade)
GRADE_THRESHOLDS = [
    (101, Grade.S_PLUS),
    (91, Grade.S),
    (86, Grade.A_PLUS),
    (81, Grade.A),
    (70, Grade.B),
]
LOWEST_GRADE = Grade.C
REDLINE_OVERALL_CAP = 69


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int = 4) -> float:
    base = 10 ** digits
    return math.floor(value * base + 0.5) / base


def clamp(value: float, low: float, high: float) -> float:
    if value is None or math.isnan(value):
        return low
    return max(low, min(high, value))


def map_grade(total110: float) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if total110 >= threshold:
            return grade
    return LOWEST_GRADE


def overall_from_total(total110: float) -> int:
    return round_half_up(total110 / TOTAL_MAX * 100)


def sum_by_prefix(items: List[AuditItem], prefix: str) -> float:
    return sum(item.score for item in items if item.id.startswith(prefix))


def score_of(items: List[AuditItem], item_id: str) -> float:
    for item in items:
        if item.id == item_id:
            return item.score
    return 0.0


def build_breakdown(pay: float, story: float, market: float, potential: float) -> ScoreBreakdown:
    """Clamp each dimension to its maximum, then derive total, overall and grade."""
    dims = {
        'pay': round_to(clamp(pay, 0, DIMENSION_MAX['pay'])),
        'story': round_to(clamp(story, 0, DIMENSION_MAX['story'])),
        'market': round_to(clamp(market, 0, DIMENSION_MAX['market'])),
        'potential': round_to(clamp(potential, 0, DIMENSION_MAX['potential'])),
    }
    total110 = round_to(sum(dims.values()))
    return ScoreBreakdown(
        total110=total110,
        overall100=overall_from_total(total110),
        grade=map_grade(total110),
        **dims,
    )


def aggregate_scores(items: List[AuditItem]) -> ScoreBreakdown:
    """Sum audit items into the four dimensions by id prefix."""
    return build_breakdown(
        pay=sum_by_prefix(items, 'pay.'),
        story=sum_by_prefix(items, 'story.'),
        market=sum_by_prefix(items, 'market.'),
        potential=sum_by_prefix(items, 'potential.'),
    )


def apply_redline_override(breakdown: ScoreBreakdown, redline_hit: bool) -> ScoreBreakdown:
    """Force the lowest grade and cap overall100. Idempotent; total110 is kept."""
    if not redline_hit:
        return breakdown
    return replace(
        breakdown,
        grade=LOWEST_GRADE,
        overall100=min(breakdown.overall100, REDLINE_OVERALL_CAP),
    )


@dataclass
class AnalysisScoreResult:
    """Final scoring outcome, deterministic or AI-assisted."""
    breakdown: ScoreBreakdown
    redline_hit: bool = False
    redline_evidence: List[str] = field(default_factory=list)
    items: List[AuditItem] = field(default_factory=list)
    presentation: Optional[Dict[str, Any]] = None
    benchmark_mode: str = 'rule-only'

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            'meta': {
                'rulesetVersion': RULESET_VERSION,
                'benchmarkMode': self.benchmark_mode,
                'noExternalDataset': True,
                'redlineHit': self.redline_hit,
                'redlineEvidence': list(self.redline_evidence),
            },
            'score': self.breakdown.to_dict(),
        }
        if self.items:
            d['audit'] = {'items': [item.to_dict() for item in self.items]}
        if self.presentation is not None:
            d['presentation'] = self.presentation
        return d
