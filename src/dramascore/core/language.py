"""Script detection and tokenization."""

import re
from typing import List, Tuple

from ..config import Config, Language, LanguageMode, Tokenizer

LANGUAGE_SAMPLE_CHARS = 8000

PAYWALL_RE = re.compile(r'\[PAYWALL\]', re.IGNORECASE)
CJK_RE = re.compile(r'[\u4E00-\u9FFF]')
LATIN_RE = re.compile(r'[a-zA-Z]')

# Regex approximation of word segmentation: one CJK ideograph, a run of
# letters/digits, or one punctuation mark. There is no dictionary, so
# Chinese words are never grouped.
SEGMENT_RE = re.compile(r'[\u3400-\u9FFF\uF900-\uFAFF]|[^\W\u3400-\u9FFF\uF900-\uFAFF]+|[^\w\s]')
WHITESPACE_RE = re.compile(r'\s+')


def script_stats(text: str) -> Tuple[int, int]:
    """Return (cjk_count, latin_count) over the leading sample of `text`."""
    sample = PAYWALL_RE.sub(' ', text)[:LANGUAGE_SAMPLE_CHARS]
    return len(CJK_RE.findall(sample)), len(LATIN_RE.findall(sample))


def detect_language_mode(text: str) -> LanguageMode:
    cjk, latin = script_stats(text)
    threshold = max(1, Config.MIXED_LANGUAGE_MIN_CHARS)
    if cjk > 0 and latin > 0 and min(cjk, latin) >= threshold:
        return LanguageMode.MIXED
    if cjk > latin:
        return LanguageMode.ZH
    return LanguageMode.EN


def detect_language(text: str) -> Language:
    return Language.ZH if detect_language_mode(text) == LanguageMode.ZH else Language.EN


def detect_tokenizer(language: Language) -> Tokenizer:
    """Whitespace for English; single-character fallback for Chinese.

    No dictionary-based Chinese segmenter is bundled, so the character
    fallback is the default for `zh`. `Tokenizer.SEGMENTER` is still
    accepted from callers that pre-selected it.
    """
    if language == Language.EN:
        return Tokenizer.WHITESPACE
    return Tokenizer.CHAR_FALLBACK


def tokenize(text: str, tokenizer: Tokenizer) -> List[str]:
    """Split `text` into tokens.

    `Tokenizer.SEGMENTER` is served by SEGMENT_RE, which yields the same
    units as the character fallback for Chinese and keeps Latin words
    and digit runs whole.
    """
    if tokenizer == Tokenizer.WHITESPACE:
        return [t for t in WHITESPACE_RE.split(text) if t]
    if tokenizer == Tokenizer.SEGMENTER:
        return SEGMENT_RE.findall(text)
    return [ch for ch in text if not ch.isspace()]


def detokenize(tokens: List[str], tokenizer: Tokenizer) -> str:
    if tokenizer == Tokenizer.WHITESPACE:
        return ' '.join(tokens)
    return ''.join(tokens)
