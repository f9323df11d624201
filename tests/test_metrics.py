"""Tests for language detection, L1 metrics and windows."""

from dramascore.config import Language, LanguageMode, Tokenizer
from dramascore.core.language import (
    detect_language,
    detect_language_mode,
    detect_tokenizer,
    detokenize,
    tokenize,
)
from dramascore.core.metrics import compute_episode_metrics, compute_metrics, word_count_for
from dramascore.core.models import Episode
from dramascore.core.windows import HEAD_TOKENS, TAIL_TOKENS, build_window, build_windows

from conftest import EN_BODY, ZH_BODY, make_episodes


class TestLanguage:
    def test_english(self):
        assert detect_language_mode(EN_BODY) == LanguageMode.EN
        assert detect_language(EN_BODY) == Language.EN
        assert detect_tokenizer(Language.EN) == Tokenizer.WHITESPACE

    def test_chinese(self):
        assert detect_language_mode(ZH_BODY) == LanguageMode.ZH
        assert detect_tokenizer(Language.ZH) == Tokenizer.CHAR_FALLBACK

    def test_mixed(self):
        assert detect_language_mode(EN_BODY + "她") == LanguageMode.MIXED

    def test_paywall_marker_ignored(self):
        assert detect_language_mode("她哭了 [PAYWALL] 她走了") == LanguageMode.ZH

    def test_tokenize_whitespace(self):
        assert tokenize("  a  b\nc ", Tokenizer.WHITESPACE) == ["a", "b", "c"]

    def test_tokenize_chars(self):
        assert tokenize("她 哭了", Tokenizer.CHAR_FALLBACK) == ["她", "哭", "了"]

    def test_tokenize_segmenter(self):
        assert tokenize("她说OK2次！", Tokenizer.SEGMENTER) == ["她", "说", "OK2", "次", "！"]

    def test_segmenter_never_groups_chinese_words(self):
        text = "她终于说出了真相。"
        assert tokenize(text, Tokenizer.SEGMENTER) == tokenize(text, Tokenizer.CHAR_FALLBACK)

    def test_detokenize(self):
        assert detokenize(["a", "b"], Tokenizer.WHITESPACE) == "a b"
        assert detokenize(["她", "哭"], Tokenizer.CHAR_FALLBACK) == "她哭"


class TestMetrics:
    def test_word_count_for(self):
        assert word_count_for(10, Tokenizer.WHITESPACE) == 10
        assert word_count_for(7, Tokenizer.CHAR_FALLBACK) == 5
        assert word_count_for(21, Tokenizer.CHAR_FALLBACK) == 15

    def test_english_hits(self):
        episode = Episode(1, "She screams. He shouts, then they fight and argue. She hesitates.")
        m = compute_episode_metrics(episode, Language.EN, Tokenizer.WHITESPACE)
        assert m.token_count == 11
        assert m.word_count == 11
        assert m.emotion_hits == 0
        assert m.conflict_ext_hits == 2
        assert m.conflict_int_hits == 0

    def test_word_bounded_matching(self):
        episode = Episode(1, "Hello, hell. Classic class.")
        m = compute_episode_metrics(episode, Language.EN, Tokenizer.WHITESPACE)
        assert m.vulgar_hits == 1

    def test_chinese_substring_hits(self):
        episode = Episode(1, "她哭了，又哭了。他愤怒地推开门。")
        m = compute_episode_metrics(episode, Language.ZH, Tokenizer.CHAR_FALLBACK)
        assert m.emotion_hits == 3
        assert m.conflict_ext_hits == 1

    def test_totals_are_field_sums(self):
        episodes = make_episodes(count=3)
        result = compute_metrics(episodes, Language.EN, Tokenizer.WHITESPACE)
        assert len(result.episodes) == 3
        assert result.totals.token_count == sum(m.token_count for m in result.episodes)
        assert result.totals.conflict_hits == sum(m.conflict_hits for m in result.episodes)


class TestWindows:
    def test_short_episode_window(self):
        episode = Episode(1, "one two three")
        window = build_window(episode, Tokenizer.WHITESPACE, Episode(2, "four five"))
        assert window.head == "one two three"
        assert window.tail == "one two three"
        assert window.next_head == "four five"
        assert window.hook_context == "one two three four five"
        assert window.paywall_context is None
        assert not window.has_paywall

    def test_long_episode_bounds(self):
        words = [f"w{i}" for i in range(1200)]
        window = build_window(Episode(1, " ".join(words)), Tokenizer.WHITESPACE)
        assert window.tokens_total == 1200
        assert window.head.split() == words[:HEAD_TOKENS]
        assert window.tail.split() == words[-TAIL_TOKENS:]
        assert window.next_head == ""

    def test_paywall_slices(self):
        words = [f"w{i}" for i in range(20)]
        text = " ".join(words[:10] + ["[PAYWALL]"] + words[10:])
        window = build_window(Episode(3, text, paywall_count=1), Tokenizer.WHITESPACE)
        assert window.has_paywall
        assert window.paywall_pre.split() == words[:10]
        assert window.paywall_post.split()[0] == "[PAYWALL]"

    def test_paywall_char_fallback(self):
        text = "她走了[PAYWALL]他来了"
        window = build_window(Episode(2, text, paywall_count=1), Tokenizer.CHAR_FALLBACK)
        assert window.paywall_pre == "她走了"
        assert window.paywall_post.startswith("[PAYWALL]")

    def test_windows_chain_next_head(self):
        episodes = [Episode(1, "alpha"), Episode(2, "beta"), Episode(3, "gamma")]
        windows = build_windows(episodes, Tokenizer.WHITESPACE)
        assert [w.next_head for w in windows] == ["beta", "gamma", ""]
