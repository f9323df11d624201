"""Tests for score aggregation, grade mapping and the redline override."""

import pytest

from dramascore.core.models import AuditItem, Grade, Ok
from dramascore.scoring.aggregate import (
    AnalysisScoreResult,
    aggregate_scores,
    apply_redline_override,
    build_breakdown,
    clamp,
    map_grade,
    overall_from_total,
    round_half_up,
    round_to,
)


def audit(item_id, score, max_score=10):
    return AuditItem(id=item_id, status=Ok(), score=score, max=max_score, reason="r")


class TestRounding:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_round_to(self):
        assert round_to(1.23456) == 1.2346

    def test_clamp_nan(self):
        assert clamp(float("nan"), 0, 5) == 0
        assert clamp(7, 0, 5) == 5


class TestGrades:
    @pytest.mark.parametrize("total,grade", [
        (110, Grade.S_PLUS),
        (101, Grade.S_PLUS),
        (100.99, Grade.S),
        (91, Grade.S),
        (86, Grade.A_PLUS),
        (81, Grade.A),
        (70, Grade.B),
        (69.99, Grade.C),
        (0, Grade.C),
    ])
    def test_map_grade(self, total, grade):
        assert map_grade(total) == grade

    def test_overall_from_total(self):
        assert overall_from_total(110) == 100
        assert overall_from_total(55) == 50
        assert overall_from_total(0) == 0


class TestBreakdown:
    def test_clamps_dimensions(self):
        b = build_breakdown(pay=80, story=-5, market=20, potential=10)
        assert b.pay == 50
        assert b.story == 0
        assert b.total110 == 80
        assert b.overall100 == 73
        assert b.grade == Grade.B

    def test_aggregate_by_prefix(self):
        items = [
            audit("pay.a", 10), audit("pay.b", 5),
            audit("story.a", 7),
            audit("market.a", 4),
            audit("potential.a", 2),
        ]
        b = aggregate_scores(items)
        assert (b.pay, b.story, b.market, b.potential) == (15, 7, 4, 2)
        assert b.total110 == 28

    def test_to_dict_shape(self):
        d = build_breakdown(40, 20, 10, 5).to_dict()
        assert d == {
            "total_110": 75,
            "overall_100": 68,
            "grade": "B",
            "breakdown_110": {"pay": 40, "story": 20, "market": 10, "potential": 5},
        }


class TestRedlineOverride:
    def test_forces_lowest_grade_and_caps_overall(self):
        b = apply_redline_override(build_breakdown(50, 30, 20, 10), True)
        assert b.grade == Grade.C
        assert b.overall100 == 69
        assert b.total110 == 110

    def test_low_score_keeps_overall(self):
        b = apply_redline_override(build_breakdown(10, 5, 5, 2), True)
        assert b.overall100 == overall_from_total(22)

    def test_idempotent(self):
        once = apply_redline_override(build_breakdown(45, 25, 15, 8), True)
        assert apply_redline_override(once, True) == once

    def test_no_hit_is_noop(self):
        b = build_breakdown(45, 25, 15, 8)
        assert apply_redline_override(b, False) is b


class TestResultEnvelope:
    def test_meta_and_optional_sections(self):
        result = AnalysisScoreResult(breakdown=build_breakdown(40, 20, 10, 5))
        d = result.to_dict()
        assert d["meta"]["redlineHit"] is False
        assert "audit" not in d
        assert "presentation" not in d

    def test_includes_items_and_presentation(self):
        result = AnalysisScoreResult(
            breakdown=build_breakdown(40, 20, 10, 5),
            items=[audit("pay.a", 1)],
            presentation={"commercialSummary": "x"},
        )
        d = result.to_dict()
        assert d["audit"]["items"][0]["id"] == "pay.a"
        assert d["presentation"] == {"commercialSummary": "x"}
