"""L1 linguistic metrics: token counts and keyword hits per episode."""

import math
from typing import Dict, List, Optional

from ..config import Language, Tokenizer
from ..scoring.keywords import KeywordTable, count_substring, count_word_bounded, get_keywords
from .language import tokenize
from .models import Episode, EpisodeMetrics, MetricsResult

# Approximate tokens per word for non-whitespace tokenizers. Kept for
# parity with existing score calibrations; a candidate for recalibration.
CJK_TOKENS_PER_WORD = 1.4

L1_CATEGORIES = ('emotion', 'conflict_ext', 'conflict_int', 'vulgar', 'taboo')


def count_keyword_hits(text: str, tokenizer: Tokenizer, keywords: List[str]) -> int:
    if tokenizer == Tokenizer.WHITESPACE:
        return sum(count_word_bounded(text, k) for k in keywords)
    return sum(count_substring(text, k.strip()) for k in keywords)


def word_count_for(token_count: int, tokenizer: Tokenizer) -> int:
    if tokenizer == Tokenizer.WHITESPACE:
        return token_count
    return int(math.floor(token_count / CJK_TOKENS_PER_WORD + 0.5))


def compute_episode_metrics(
    episode: Episode,
    language: Language,
    tokenizer: Tokenizer,
    keywords: Optional[KeywordTable] = None,
) -> EpisodeMetrics:
    keywords = keywords or get_keywords()
    vocab: Dict[str, List[str]] = {
        name: keywords.terms(f'l1.{name}', language) for name in L1_CATEGORIES
    }
    token_count = len(tokenize(episode.text, tokenizer))
    return EpisodeMetrics(
        episode=episode.number,
        token_count=token_count,
        word_count=word_count_for(token_count, tokenizer),
        emotion_hits=count_keyword_hits(episode.text, tokenizer, vocab['emotion']),
        conflict_ext_hits=count_keyword_hits(episode.text, tokenizer, vocab['conflict_ext']),
        conflict_int_hits=count_keyword_hits(episode.text, tokenizer, vocab['conflict_int']),
        vulgar_hits=count_keyword_hits(episode.text, tokenizer, vocab['vulgar']),
        taboo_hits=count_keyword_hits(episode.text, tokenizer, vocab['taboo']),
    )


def compute_metrics(
    episodes: List[Episode],
    language: Language,
    tokenizer: Tokenizer,
    keywords: Optional[KeywordTable] = None,
) -> MetricsResult:
    """Per-episode L1 metrics plus field-wise totals."""
    keywords = keywords or get_keywords()
    stats = [compute_episode_metrics(e, language, tokenizer, keywords) for e in episodes]
    totals = EpisodeMetrics(
        episode=0,
        token_count=sum(s.token_count for s in stats),
        word_count=sum(s.word_count for s in stats),
        emotion_hits=sum(s.emotion_hits for s in stats),
        conflict_ext_hits=sum(s.conflict_ext_hits for s in stats),
        conflict_int_hits=sum(s.conflict_int_hits for s in stats),
        vulgar_hits=sum(s.vulgar_hits for s in stats),
        taboo_hits=sum(s.taboo_hits for s in stats),
    )
    return MetricsResult(episodes=stats, totals=totals)
