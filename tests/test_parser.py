"""Tests for the episode parser and document header fields."""

from dramascore.core.models import Episode
from dramascore.core.parser import (
    HeaderMatch,
    NoMatch,
    block_quality,
    lex_header,
    looks_like_toc,
    parse_episodes,
    parse_header_fields,
    repair_episodes,
    split_episodes,
)

from conftest import EN_BODY, make_en_script


# ============================================================================
# Header lexer
# ============================================================================

class TestHeaderLexer:
    def test_plain_episode_header(self):
        token = lex_header("EPISODE 3")
        assert isinstance(token, HeaderMatch)
        assert token.number == 3

    def test_short_form_with_hash(self):
        token = lex_header("EP #12")
        assert isinstance(token, HeaderMatch)
        assert token.number == 12

    def test_markdown_and_decorators(self):
        token = lex_header("## **Episode 7**")
        assert isinstance(token, HeaderMatch)
        assert token.number == 7

    def test_cjk_header(self):
        token = lex_header("第 5 集")
        assert isinstance(token, HeaderMatch)
        assert token.number == 5

    def test_cjk_header_requires_suffix(self):
        assert isinstance(lex_header("第5场"), NoMatch)

    def test_shot_numbering_is_not_a_header(self):
        token = lex_header("EP 3 - 2")
        assert isinstance(token, NoMatch)
        assert token.reason == "shot-list numbering"

    def test_word_starting_with_episode_is_not_a_header(self):
        assert isinstance(lex_header("Episodes are fun"), NoMatch)

    def test_ordinary_line(self):
        assert isinstance(lex_header("MIA: Where were you?"), NoMatch)


# ============================================================================
# Splitting
# ============================================================================

class TestSplitEpisodes:
    def test_splits_in_document_order(self):
        episodes = split_episodes("EPISODE 1\nHello there.\nEPISODE 2\nGoodbye now.")
        assert [e.number for e in episodes] == [1, 2]
        assert episodes[0].text == "Hello there."
        assert episodes[1].text == "Goodbye now."

    def test_inline_title_kept_as_first_line(self):
        episodes = split_episodes("EPISODE 1: The Contract\nShe signs.")
        assert episodes[0].text == "The Contract\nShe signs."

    def test_glued_header_is_split(self):
        episodes = split_episodes("EPISODE 1\nShe leaves the room. EPISODE 2\nHe follows.")
        assert [e.number for e in episodes] == [1, 2]
        assert episodes[0].text == "She leaves the room."

    def test_counts_paywall_markers(self):
        episodes = split_episodes("EPISODE 1\nBefore [paywall] after.\nEPISODE 2\nNothing.")
        assert episodes[0].paywall_count == 1
        assert episodes[1].paywall_count == 0

    def test_crlf_newlines(self):
        episodes = split_episodes("EPISODE 1\r\nLine one.\r\nEPISODE 2\r\nLine two.")
        assert [e.text for e in episodes] == ["Line one.", "Line two."]

    def test_no_headers(self):
        assert split_episodes("Just some prose without headers.") == []


# ============================================================================
# Repair
# ============================================================================

class TestRepair:
    def test_clean_input_is_unchanged(self):
        text = make_en_script(count=5)
        raw = split_episodes(text)
        repaired = parse_episodes(text)
        assert [e.number for e in repaired] == [1, 2, 3, 4, 5]
        assert [e.text for e in repaired] == [e.text for e in raw]

    def test_keeps_longest_duplicate_block(self):
        prose = ("She crosses the ballroom and every head turns toward her. " * 16).strip()
        assert len(prose) > 900
        raw = [
            Episode(4, "Short body."),
            Episode(5, "Only twenty chars..."),
            Episode(6, "Another short one."),
            Episode(5, prose),
        ]
        result = repair_episodes(raw)
        fifth = [e for e in result.episodes if e.number == 5]
        assert len(fifth) == 1
        assert fifth[0].text == prose

    def test_toc_block_loses_to_dialogue(self):
        dialogue = ("林晚：你为什么要骗我？顾沉：我没有骗你。" * 30)
        text = f"第3集\n目录 ...... 37\n第1集\n开场。\n第2集\n继续。\n第3集\n{dialogue}"
        episodes = parse_episodes(text)
        third = [e for e in episodes if e.number == 3]
        assert len(third) == 1
        assert third[0].text == dialogue

    def test_adjacent_reprints_are_merged(self):
        result = repair_episodes([Episode(1, "Part one."), Episode(1, "Part two."), Episode(2, "Next.")])
        assert result.episodes[0].text == "Part one.\nPart two."
        assert result.source_order == [1, 2]

    def test_output_sorted_and_source_order_kept(self):
        result = repair_episodes([Episode(1, EN_BODY), Episode(3, EN_BODY), Episode(2, EN_BODY)])
        assert [e.number for e in result.episodes] == [1, 2, 3]
        assert result.source_order == [1, 3, 2]

    def test_empty_blocks_dropped(self):
        result = repair_episodes([Episode(1, "Body."), Episode(2, "   ")])
        assert [e.number for e in result.episodes] == [1]

    def test_paywall_recounted_after_merge(self):
        result = repair_episodes([Episode(2, "A [PAYWALL]"), Episode(2, "B [PAYWALL]")])
        assert result.episodes[0].paywall_count == 2


class TestBlockQuality:
    def test_toc_detection(self):
        assert looks_like_toc("目录")
        assert looks_like_toc("Chapter One ........ 12")
        assert looks_like_toc("37")
        assert not looks_like_toc("She walks in and slams the door.")

    def test_empty_block_scores_lowest(self):
        assert block_quality("") < block_quality("x")

    def test_short_block_penalized(self):
        assert block_quality("Short.") < 0
        assert block_quality("word " * 60) > 0


# ============================================================================
# Header fields
# ============================================================================

class TestHeaderFields:
    def test_fields_on_one_line(self):
        fields = parse_header_fields("TITLE: Night Queen TOTAL_EPISODES: 20 IS_COMPLETED: true\n")
        assert fields.title == "Night Queen"
        assert fields.total_episodes == 20
        assert fields.is_completed is True

    def test_fields_on_separate_lines(self):
        fields = parse_header_fields("TITLE: Night Queen\nTOTAL_EPISODES: 12\nIS_COMPLETED: false\n")
        assert fields.title == "Night Queen"
        assert fields.total_episodes == 12
        assert fields.is_completed is False

    def test_missing_fields(self):
        fields = parse_header_fields("EPISODE 1\nHello.")
        assert fields.title is None
        assert fields.total_episodes is None
        assert fields.is_completed is None

    def test_fallback_markdown_title(self):
        fields = parse_header_fields("# The Hidden Heiress\n\nEPISODE 1\nHello.")
        assert fields.title == "The Hidden Heiress"

    def test_fallback_skips_episode_headings(self):
        fields = parse_header_fields("# EPISODE 1\nHello.\n## Real Title")
        assert fields.title == "Real Title"

    def test_fallback_book_title_marks(self):
        fields = parse_header_fields("《契约之心》\n第1集\n开场。")
        assert fields.title == "契约之心"
