"""Tests for the two-pass AI scoring orchestrator (mock model client)."""

import asyncio

import pytest

from dramascore.ai import orchestrator as orchestrator_module
from dramascore.ai.briefs import build_briefs
from dramascore.ai.orchestrator import (
    AIScoringOrchestrator,
    chunked,
    compute_ai_breakdown,
    evaluate_ai_score,
)
from dramascore.config import Language, Tokenizer
from dramascore.core.models import AIEvaluationError, Episode, Grade, PresentationContractError
from dramascore.scoring.aggregate import REDLINE_OVERALL_CAP, overall_from_total

from conftest import MockAsyncClient, episode_pass_item


def evaluate(episodes, client, **kwargs):
    orchestrator = AIScoringOrchestrator(client=client, **kwargs)
    return asyncio.run(orchestrator.evaluate(episodes, Language.EN, Tokenizer.WHITESPACE))


# ============================================================================
# Full run
# ============================================================================

class TestEvaluate:
    def test_score_is_consistent(self, en_episodes):
        b = evaluate(en_episodes, MockAsyncClient()).breakdown
        assert b.total110 == pytest.approx(b.pay + b.story + b.market + b.potential, abs=0.01)
        assert b.overall100 == overall_from_total(b.total110)
        assert 0 <= b.pay <= 50
        assert 0 <= b.potential <= 10

    def test_presentation_covers_every_episode(self, en_episodes):
        presentation = evaluate(en_episodes, MockAsyncClient()).presentation
        assert [r["episode"] for r in presentation["episodeRows"]] == list(range(1, 13))
        assert [c["episode"] for c in presentation["diagnosis"]["matrix"]] == list(range(1, 13))
        assert [a["slot"] for a in presentation["charts"]["emotion"]["anchors"]] == ["Start", "Mid", "End"]
        assert len(presentation["charts"]["conflict"]["phases"]) == 6

    def test_details_only_for_non_optimal(self, en_episodes):
        presentation = evaluate(en_episodes, MockAsyncClient()).presentation
        details = presentation["diagnosis"]["details"]
        assert [d["episode"] for d in details] == [3, 5]
        assert details[0]["pacingScore"] == 7.3
        assert details[0]["signalPercent"] == 73

    def test_hook_type_sanitized(self, en_episodes):
        presentation = evaluate(en_episodes, MockAsyncClient(hooks={12: "  none "})).presentation
        assert presentation["episodeRows"][11]["primaryHookType"] == "None"

    def test_single_request_for_small_series(self, en_episodes):
        client = MockAsyncClient()
        evaluate(en_episodes, client)
        assert client.calls == ["episode", "global"]

    def test_envelope(self, en_episodes):
        d = evaluate(en_episodes, MockAsyncClient()).to_dict()
        assert d["meta"]["benchmarkMode"] == "rule-only"
        assert d["meta"]["redlineHit"] is False
        assert d["presentation"]["commercialSummary"].startswith("A tight contract romance")

    def test_convenience_wrapper(self, en_episodes):
        client = MockAsyncClient()
        result = asyncio.run(evaluate_ai_score(en_episodes, Language.EN, Tokenizer.WHITESPACE, client=client))
        assert len(result.presentation["episodeRows"]) == 12
        assert not client.closed

    def test_convenience_wrapper_closes_its_own_client(self, en_episodes, monkeypatch):
        client = MockAsyncClient(leaks={"global": 99})
        monkeypatch.setattr(orchestrator_module, "AIClient", lambda: client)
        with pytest.raises(AIEvaluationError):
            asyncio.run(evaluate_ai_score(en_episodes, Language.EN, Tokenizer.WHITESPACE))
        assert client.closed


class TestChunking:
    def test_episode_pass_is_chunked(self, en_episodes):
        client = MockAsyncClient()
        result = evaluate(en_episodes, client, chunk_size=5)
        assert client.calls.count("episode") == 3
        assert client.calls[-1] == "global"
        assert [r["episode"] for r in result.presentation["episodeRows"]] == list(range(1, 13))

    def test_chunked_helper(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunked([1, 2], 0) == [[1], [2]]


# ============================================================================
# Retries and failures
# ============================================================================

class TestRetries:
    def test_non_english_output_is_retried(self, en_episodes):
        client = MockAsyncClient(leaks={"episode": 1, "global": 2})
        result = evaluate(en_episodes, client)
        assert client.calls.count("episode") == 2
        assert client.calls.count("global") == 3
        assert result.presentation["episodeRows"][0]["aiHighlight"].startswith("Episode 1")

    def test_exhausted_global_pass(self, en_episodes):
        client = MockAsyncClient(leaks={"global": 99})
        with pytest.raises(AIEvaluationError, match="L2_GLOBAL_PASS failed after retries"):
            evaluate(en_episodes, client, max_attempts=3)
        assert client.calls.count("global") == 3

    def test_schema_violation_exhausts_episode_pass(self, en_episodes):
        client = MockAsyncClient(invalid=True)
        with pytest.raises(AIEvaluationError, match="L2_EPISODE_PASS failed after retries"):
            evaluate(en_episodes, client, max_attempts=2)
        assert client.calls == ["episode", "episode"]

    def test_one_failed_chunk_fails_the_batch(self, en_episodes):
        client = MockAsyncClient(fail_episodes={7})
        with pytest.raises(AIEvaluationError,
                           match="L2_EPISODE_PASS failed after retries: Non-English text detected"):
            evaluate(en_episodes, client, chunk_size=5, max_attempts=3)
        assert client.calls.count("episode") == 5
        assert "global" not in client.calls

    def test_missing_episode_is_contract_error(self, en_episodes):
        with pytest.raises(PresentationContractError, match="missing episode 4"):
            evaluate(en_episodes, MockAsyncClient(skip={4}))

    def test_error_code(self, en_episodes):
        with pytest.raises(AIEvaluationError) as exc:
            evaluate(en_episodes, MockAsyncClient(leaks={"global": 99}), max_attempts=1)
        assert exc.value.code == "ERR_AI_EVAL"


# ============================================================================
# Redline and deterministic breakdown
# ============================================================================

class TestRedline:
    def test_redline_forces_lowest_grade(self, en_episodes):
        en_episodes[3] = Episode(4, en_episodes[3].text + "\nThe plot involves terrorism.")
        result = evaluate(en_episodes, MockAsyncClient())
        assert result.redline_hit
        assert result.breakdown.grade == Grade.C
        assert result.breakdown.overall100 <= REDLINE_OVERALL_CAP
        assert result.to_dict()["meta"]["redlineEvidence"] == ["terrorism"]


class TestBreakdown:
    def test_hook_coverage_moves_pay_and_potential(self, en_episodes):
        briefs = build_briefs(en_episodes, Language.EN, Tokenizer.WHITESPACE)
        hooked = [episode_pass_item(b.episode) for b in briefs]
        unhooked = [episode_pass_item(b.episode, hook="None") for b in briefs]

        with_hooks = compute_ai_breakdown(briefs, hooked)
        without_hooks = compute_ai_breakdown(briefs, unhooked)
        assert with_hooks.pay - without_hooks.pay == pytest.approx(14, abs=1e-3)
        assert with_hooks.potential - without_hooks.potential == pytest.approx(2, abs=1e-3)
        assert with_hooks.story == without_hooks.story

    def test_issue_ratio_lowers_story(self, en_episodes):
        briefs = build_briefs(en_episodes, Language.EN, Tokenizer.WHITESPACE)
        clean = [episode_pass_item(b.episode) for b in briefs]
        broken = [episode_pass_item(b.episode, state="issue") for b in briefs]
        assert compute_ai_breakdown(briefs, broken).story < compute_ai_breakdown(briefs, clean).story
