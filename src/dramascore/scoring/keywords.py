"""Versioned bilingual keyword tables and term counting."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from ..config import Config, Language

LATIN_RE = re.compile(r'[a-z]', re.IGNORECASE)
ALNUM = 'abcdefghijklmnopqrstuvwxyz0123456789'


class KeywordTable:
    """Read-only access to the keyword tables.

    Categories are addressed by dotted path, e.g. `paywall.hook_decision`
    or `story.male_tag_groups`.
    """

    def __init__(self, data: Dict, source: Optional[str] = None):
        if not isinstance(data, dict) or 'version' not in data:
            raise ValueError(f"Keyword table {source or ''} has no version key".strip())
        self.data = data
        self.source = source
        self.version = str(data['version'])

    @classmethod
    def load(cls, path: Union[str, Path]) -> "KeywordTable":
        path = Path(path)
        with path.open(encoding='utf-8') as f:
            return cls(yaml.safe_load(f), source=str(path))

    def node(self, dotted: str):
        value = self.data
        for part in dotted.split('.'):
            if not isinstance(value, dict) or part not in value:
                raise KeyError(f"Unknown keyword category: {dotted}")
            value = value[part]
        return value

    def terms(self, dotted: str, language: Language) -> List[str]:
        """Term list of one category for one language."""
        entry = self.node(dotted)
        return [str(t) for t in entry.get(language.value, [])]

    def groups(self, dotted: str, language: Language) -> Dict[str, List[str]]:
        """Named sub-categories (tag groups, genres) for one language, in file order."""
        return {
            name: [str(t) for t in entry.get(language.value, [])]
            for name, entry in self.node(dotted).items()
        }


@lru_cache(maxsize=4)
def _load_cached(path: str) -> KeywordTable:
    return KeywordTable.load(path)


def get_keywords(path: Optional[str] = None) -> KeywordTable:
    """Keyword table at `path` (defaults to Config.KEYWORDS_PATH), cached."""
    return _load_cached(path or Config.KEYWORDS_PATH)


# ----------------------------------------------------------------------------
# Counting
# ----------------------------------------------------------------------------

@lru_cache(maxsize=2048)
def _english_term_regex(term: str):
    escaped = re.escape(term.lower())
    escaped = re.sub(r'(\\\s)+', r'\\s+', escaped)
    return re.compile(r'(?<![a-z0-9])' + escaped + r'(?![a-z0-9])')


def count_substring(text: str, term: str) -> int:
    """Non-overlapping raw substring occurrences."""
    if not term:
        return 0
    return text.count(term)


def count_term(text: str, term: str, language: Language) -> int:
    """Occurrences of one term.

    English text, or any term containing Latin letters, is matched
    case-insensitively at ASCII word boundaries with flexible inner
    whitespace. Other terms are counted as raw substrings.
    """
    if not term:
        return 0
    if language == Language.EN or LATIN_RE.search(term):
        return len(_english_term_regex(term).findall(text.lower()))
    return count_substring(text, term)


def count_terms(text: str, terms: List[str], language: Language) -> int:
    return sum(count_term(text, term, language) for term in terms)


def collect_matched_terms(text: str, terms: List[str], language: Language) -> List[str]:
    """Terms that occur at least once, in table order."""
    return [term for term in terms if count_term(text, term, language) > 0]


def count_word_bounded(text: str, keyword: str) -> int:
    """Case-insensitive non-overlapping hits bounded by non-alphanumerics.

    Used for whitespace-tokenized text. A hit that is part of a longer
    word is skipped, and the scan continues after it.
    """
    source = text.lower()
    needle = keyword.lower().strip()
    if not needle:
        return 0
    count = 0
    index = source.find(needle)
    while index >= 0:
        end = index + len(needle)
        before_ok = index == 0 or source[index - 1] not in ALNUM
        after_ok = end >= len(source) or source[end] not in ALNUM
        if before_ok and after_ok:
            count += 1
        index = source.find(needle, end)
    return count
