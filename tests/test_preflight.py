"""Tests for preflight validation and ingest metadata."""

import pytest

from dramascore.config import Language, Tokenizer
from dramascore.core.models import (
    CompletionState,
    IngestMode,
    IssueCode,
    PreflightBlockedError,
    Severity,
)
from dramascore.core.preflight import coverage_ratio, ensure_scorable, parse_and_preflight

from conftest import EN_BODY, make_en_script


def codes(issues):
    return [issue.code for issue in issues]


class TestCleanDocuments:
    def test_fifteen_episodes_official(self, en_script):
        result = parse_and_preflight(en_script)
        assert result.errors == []
        assert result.warnings == []
        assert result.ingest.mode == IngestMode.OFFICIAL
        assert result.ingest.total_for_scoring == 15
        assert result.ingest.observed_count == 15
        assert result.ingest.coverage_ratio == 1.0
        assert result.is_scorable

    def test_meta_fields(self, en_script):
        result = parse_and_preflight(en_script)
        assert result.meta.title == "Contract Hearts"
        assert result.meta.language == Language.EN
        assert result.meta.tokenizer == Tokenizer.WHITESPACE
        assert result.meta.total_episodes == 15

    def test_chinese_document(self, zh_script):
        result = parse_and_preflight(zh_script)
        assert result.errors == []
        assert result.meta.language == Language.ZH
        assert result.meta.tokenizer == Tokenizer.CHAR_FALLBACK
        assert result.meta.title == "契约之心"

    def test_inferred_total_without_header(self):
        result = parse_and_preflight(make_en_script(count=6))
        assert result.ingest.declared_total is None
        assert result.ingest.inferred_total == 6
        assert result.ingest.total_for_scoring == 6

    def test_completion_state(self):
        text = "IS_COMPLETED: true\n" + make_en_script(count=3)
        assert parse_and_preflight(text).ingest.completion_state == CompletionState.COMPLETED

    def test_to_dict_uses_contract_keys(self, en_script):
        d = parse_and_preflight(en_script).to_dict()
        assert d["ingest"]["totalEpisodesForScoring"] == 15
        assert d["ingest"]["declaredTotalEpisodes"] == 15
        assert d["ingest"]["mode"] == "official"
        assert len(d["episodes"]) == 15


class TestFatalIssues:
    def test_no_headers(self):
        result = parse_and_preflight("A story without any episode markers at all.")
        assert IssueCode.NO_EPISODE_HEADERS in codes(result.errors)
        assert not result.is_scorable

    def test_too_many_paywalls(self):
        result = parse_and_preflight(make_en_script(count=15, total=15, paywalls=(3, 6, 9)))
        assert IssueCode.TOO_MANY_PAYWALLS in codes(result.errors)
        assert result.ingest.mode == IngestMode.PROVISIONAL

    def test_multiple_paywalls_in_one_episode(self):
        text = f"EPISODE 1\n{EN_BODY}\nEPISODE 2\n{EN_BODY}\n[PAYWALL]\nMore.\n[PAYWALL]\nEPISODE 3\n{EN_BODY}"
        result = parse_and_preflight(text)
        assert IssueCode.MULTI_PAYWALL_IN_EPISODE in codes(result.errors)

    def test_out_of_order_headers(self):
        result = parse_and_preflight(make_en_script(order=[1, 3, 2]))
        issue = next(i for i in result.errors if i.code == IssueCode.OUT_OF_ORDER_EPISODE)
        assert "3->2" in issue.message
        assert [e.number for e in result.episodes] == [1, 2, 3]

    def test_mixed_language(self):
        text = f"EPISODE 1\n{EN_BODY}\n她哭了。\nEPISODE 2\n{EN_BODY}"
        result = parse_and_preflight(text)
        assert IssueCode.MIXED_LANGUAGE in codes(result.errors)

    def test_invalid_declared_total(self):
        result = parse_and_preflight("TOTAL_EPISODES: 0\n" + make_en_script(count=3))
        assert IssueCode.INVALID_TOTAL_EPISODES in codes(result.errors)


class TestDuplicateHeaders:
    def test_reprinted_episode_is_repaired_not_fatal(self):
        text = make_en_script(count=5, total=5) + "\nEPISODE 3\nA short recap.\n"
        result = parse_and_preflight(text)
        assert result.errors == []
        assert IssueCode.DUPLICATE_EPISODE not in codes(result.errors + result.warnings)
        assert [e.number for e in result.episodes] == [1, 2, 3, 4, 5]
        assert result.episodes[2].text.startswith("INT. PENTHOUSE")

    def test_repaired_numbers_are_unique(self):
        text = (
            "EPISODE 2\nA short recap.\n"
            + make_en_script(count=4)
            + "\nEPISODE 4\nEnd credits.\nEPISODE 1\nPreviously.\n"
        )
        numbers = [e.number for e in parse_and_preflight(text).episodes]
        assert numbers == sorted(set(numbers))


class TestWarnings:
    def test_missing_episodes(self):
        result = parse_and_preflight(make_en_script(count=3, total=5))
        assert result.errors == []
        issue = result.warnings[0]
        assert issue.code == IssueCode.MISSING_EPISODE
        assert issue.severity == Severity.WARN
        assert issue.message == "Missing episode numbers: 4, 5."
        assert result.ingest.mode == IngestMode.PROVISIONAL
        assert result.ingest.coverage_ratio == pytest.approx(0.6)

    def test_missing_preview_is_truncated(self):
        result = parse_and_preflight(make_en_script(count=1, total=20))
        message = result.warnings[0].message
        assert message.endswith("….")
        assert "12" not in message

    def test_paywall_in_first_episode_out_of_range(self):
        result = parse_and_preflight(make_en_script(count=10, total=10, paywalls=(1,)))
        assert IssueCode.PAYWALL_OUT_OF_RANGE in codes(result.warnings)
        assert result.is_scorable

    def test_paywall_in_range(self):
        result = parse_and_preflight(make_en_script(count=10, total=10, paywalls=(5,)))
        assert result.warnings == []


class TestHelpers:
    def test_coverage_ratio_bounds(self):
        assert coverage_ratio(5, 0) == 0.0
        assert coverage_ratio(30, 20) == 1.0
        assert coverage_ratio(5, 20) == 0.25

    def test_ensure_scorable_raises(self):
        result = parse_and_preflight("No headers here.")
        with pytest.raises(PreflightBlockedError) as exc:
            ensure_scorable(result)
        assert exc.value.code == "ERR_PREFLIGHT"
        assert "ERR_NO_EPISODE_HEADERS" in exc.value.message

    def test_ensure_scorable_passes_through(self, en_script):
        result = parse_and_preflight(en_script)
        assert ensure_scorable(result) is result
