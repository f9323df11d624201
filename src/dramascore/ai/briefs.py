"""Episode briefs: compact per-episode prompt input."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import Config, Language, Tokenizer
from ..core.metrics import compute_episode_metrics
from ..core.models import AIEvaluationError, Episode, EpisodeMetrics, EpisodeWindow
from ..core.windows import build_windows
from ..scoring.keywords import KeywordTable, count_terms, get_keywords

OPENING_CHARS = 600
ENDING_CHARS = 600
EVENT_CHARS = 160
MIN_KEY_EVENTS = 3
MAX_KEY_EVENTS = 6

EVENT_CATEGORIES = ('l1.emotion', 'l1.conflict_ext', 'l1.conflict_int', 'density.drama_events')

SENTENCE_SPLIT_RE = re.compile(r'\n+|(?<=[.!?。！？…])\s+|(?<=[。！？])')
WS_RE = re.compile(r'\s+')
PAYWALL_MARKER_RE = re.compile(r'\[PAYWALL\]', re.IGNORECASE)


@dataclass
class EpisodeBrief:
    """Opening/ending excerpts, key events and raw hit counts of one episode."""
    episode: int
    opening: str
    ending: str
    key_events: List[str] = field(default_factory=list)
    token_count: int = 0
    word_count: int = 0
    emotion_raw: int = 0
    conflict_ext_raw: int = 0
    conflict_int_raw: int = 0
    paywall_flag: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'episode': self.episode,
            'opening': self.opening,
            'ending': self.ending,
            'keyEvents': list(self.key_events),
            'tokenCount': self.token_count,
            'wordCount': self.word_count,
            'emotionRaw': self.emotion_raw,
            'conflictExtRaw': self.conflict_ext_raw,
            'conflictIntRaw': self.conflict_int_raw,
            'paywallFlag': self.paywall_flag,
        }


def _squash(text: str) -> str:
    return WS_RE.sub(' ', PAYWALL_MARKER_RE.sub(' ', text)).strip()


def _head(text: str, limit: int) -> str:
    text = _squash(text)
    return text if len(text) <= limit else text[:limit - 1].rstrip() + '…'


def _tail(text: str, limit: int) -> str:
    text = _squash(text)
    return text if len(text) <= limit else '…' + text[-(limit - 1):].lstrip()


def split_sentences(text: str) -> List[str]:
    return [s for s in (_squash(part) for part in SENTENCE_SPLIT_RE.split(text)) if s]


def extract_key_events(
    text: str,
    opening: str,
    ending: str,
    language: Language,
    keywords: KeywordTable,
) -> List[str]:
    """3-6 keyword-dense sentences in document order, padded from opening/ending."""
    terms: List[str] = []
    for category in EVENT_CATEGORIES:
        terms.extend(keywords.terms(category, language))

    scored = []
    for index, sentence in enumerate(split_sentences(text)):
        hits = count_terms(sentence, terms, language)
        if hits > 0:
            scored.append((hits, index, sentence))

    top = sorted(scored, key=lambda item: (-item[0], item[1]))[:MAX_KEY_EVENTS]
    events = [_head(sentence, EVENT_CHARS) for _, _, sentence in sorted(top, key=lambda item: item[1])]

    for filler in (_head(opening, EVENT_CHARS), _tail(ending, EVENT_CHARS)):
        if len(events) >= MIN_KEY_EVENTS:
            break
        if filler and filler not in events:
            events.append(filler)

    fallback = _head(opening or ending, EVENT_CHARS)
    while fallback and len(events) < MIN_KEY_EVENTS:
        events.append(fallback)
    return events


def build_brief(
    episode: Episode,
    window: EpisodeWindow,
    metrics: EpisodeMetrics,
    language: Language,
    keywords: KeywordTable,
) -> EpisodeBrief:
    opening = _head(window.head, OPENING_CHARS)
    ending = _tail(window.tail, ENDING_CHARS)
    return EpisodeBrief(
        episode=episode.number,
        opening=opening,
        ending=ending,
        key_events=extract_key_events(episode.text, opening, ending, language, keywords),
        token_count=metrics.token_count,
        word_count=metrics.word_count,
        emotion_raw=metrics.emotion_hits,
        conflict_ext_raw=metrics.conflict_ext_hits,
        conflict_int_raw=metrics.conflict_int_hits,
        paywall_flag=episode.paywall_count > 0,
    )


def build_briefs(
    episodes: List[Episode],
    language: Language,
    tokenizer: Tokenizer,
    keywords: Optional[KeywordTable] = None,
) -> List[EpisodeBrief]:
    """One brief per episode, in episode order."""
    keywords = keywords or get_keywords()
    ordered = sorted(episodes, key=lambda e: e.number)
    windows = build_windows(ordered, tokenizer)
    return [
        build_brief(e, w, compute_episode_metrics(e, language, tokenizer, keywords), language, keywords)
        for e, w in zip(ordered, windows)
    ]


def validate_briefs(briefs: List[EpisodeBrief], max_episodes: Optional[int] = None) -> None:
    """Raise AIEvaluationError unless briefs are a usable 1..N set."""
    max_episodes = max_episodes or Config.MAX_BRIEF_EPISODES
    if not briefs:
        raise AIEvaluationError("episodeBriefs must contain at least 1 episode.")
    if len(briefs) > max_episodes:
        raise AIEvaluationError(f"episodeBriefs exceeds limit ({max_episodes}).")

    seen = set()
    for brief in briefs:
        if brief.episode in seen:
            raise AIEvaluationError(f"episodeBriefs contains duplicate episode {brief.episode}.")
        seen.add(brief.episode)
        if brief.episode < 1:
            raise AIEvaluationError("episode number must be >= 1.")
        if not brief.opening.strip() or not brief.ending.strip():
            raise AIEvaluationError(f"episode {brief.episode} has empty opening or ending.")
        if not MIN_KEY_EVENTS <= len(brief.key_events) <= MAX_KEY_EVENTS:
            raise AIEvaluationError(f"episode {brief.episode} keyEvents must contain 3-6 items.")

    if sorted(seen) != list(range(1, len(briefs) + 1)):
        raise AIEvaluationError("episodeBriefs must be continuous from 1..N without gaps.")
