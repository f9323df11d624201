"""Episode parser for DramaScore.

Turns raw script text into an ordered, de-duplicated list of episodes.

Recognized header dialects (case-insensitive, at line start, after optional
markdown `#` prefixes and decorative punctuation):
- EPISODE [#] <N>
- EP [#] <N>
- 第 <N> 集

A trailing `<N> - <M>` suffix is shot-list numbering, not a header.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .models import Episode

logger = logging.getLogger(__name__)

META_SAMPLE_CHARS = 6000
TITLE_SCAN_LINES = 24

DECORATOR_CHARS = set('*-_~`•|')
SHOT_DASHES = ('-', '–')
DIGITS = '0123456789'

PAYWALL_RE = re.compile(r'\[PAYWALL\]', re.IGNORECASE)

# Headers glued onto a preceding line by PDF extraction are moved onto
# their own line.
GLUED_LATIN_HEADER_RE = re.compile(
    r'([^\n])[ \t]+(?=(?:\*+\s*)?(?:EPISODE|EP)\s*(?:#\s*)?\d+(?!\s*[-–]\s*\d)\b)',
    re.IGNORECASE,
)
GLUED_CJK_HEADER_RE = re.compile(
    r'([^\n])[ \t]+(?=(?:\*+\s*)?第\s*\d+(?!\s*[-–]\s*\d)\s*集)'
)

INLINE_LEAD_RE = re.compile(r'^[-:：*|#\s]+')
INLINE_TRAIL_RE = re.compile(r'[*|#\s]+$')

TOC_HEADING_RE = re.compile(r'^(?:目\s*录|contents)\b', re.IGNORECASE)
TOC_LEADER_RE = re.compile(r'[.·…]{3,}\s*\d{1,4}\s*$')
PAGE_NUMBER_RE = re.compile(r'^\d{1,4}$')

SHORT_BLOCK_CHARS = 140
SHORT_BLOCK_LINES = 3
EMPTY_PENALTY = -10_000
SHORT_PENALTY = 2_000
TOC_PENALTY = 6_000


# ----------------------------------------------------------------------------
# Header lexer
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class HeaderMatch:
    """A recognized episode header. `end` is the offset just past the header."""
    number: int
    end: int


@dataclass(frozen=True)
class NoMatch:
    reason: str


HeaderToken = Union[HeaderMatch, NoMatch]


class HeaderLexer:
    """Scans one line and classifies it as an episode header or not."""

    def __init__(self, line: str):
        self.line = line
        self.pos = 0

    def peek(self) -> str:
        return self.line[self.pos] if self.pos < len(self.line) else ''

    def skip_whitespace(self) -> None:
        while self.peek() and self.peek().isspace():
            self.pos += 1

    def skip_heading_prefix(self) -> None:
        if self.peek() != '#':
            return
        while self.peek() == '#':
            self.pos += 1
        self.skip_whitespace()

    def skip_decorators(self) -> None:
        while self.peek() and (self.peek().isspace() or self.peek() in DECORATOR_CHARS):
            self.pos += 1

    def read_number(self) -> Optional[int]:
        start = self.pos
        while self.peek() and self.peek() in DIGITS:
            self.pos += 1
        if self.pos == start:
            return None
        return int(self.line[start:self.pos])

    def has_shot_suffix(self) -> bool:
        lookahead = HeaderLexer(self.line)
        lookahead.pos = self.pos
        lookahead.skip_whitespace()
        if lookahead.peek() not in SHOT_DASHES:
            return False
        lookahead.pos += 1
        lookahead.skip_whitespace()
        return lookahead.peek() != '' and lookahead.peek() in DIGITS

    def lex(self) -> HeaderToken:
        self.skip_whitespace()
        self.skip_heading_prefix()
        self.skip_decorators()

        rest = self.line[self.pos:].upper()
        if rest.startswith('EPISODE') or rest.startswith('EP'):
            self.pos += len('EPISODE') if rest.startswith('EPISODE') else len('EP')
            self.skip_whitespace()
            if self.peek() == '#':
                self.pos += 1
                self.skip_whitespace()
            number = self.read_number()
            if number is None:
                return NoMatch('no episode number')
            if self.has_shot_suffix():
                return NoMatch('shot-list numbering')
            return HeaderMatch(number, self.pos)

        if self.peek() == '第':
            self.pos += 1
            self.skip_whitespace()
            number = self.read_number()
            if number is None:
                return NoMatch('no episode number')
            if self.has_shot_suffix():
                return NoMatch('shot-list numbering')
            self.skip_whitespace()
            if self.peek() != '集':
                return NoMatch('missing 集')
            self.pos += 1
            return HeaderMatch(number, self.pos)

        return NoMatch('not a header')


def lex_header(line: str) -> HeaderToken:
    """Classify a single line as HeaderMatch or NoMatch."""
    return HeaderLexer(line).lex()


# ----------------------------------------------------------------------------
# Splitting
# ----------------------------------------------------------------------------

def normalize_newlines(text: str) -> str:
    return text.replace('\r\n', '\n').replace('\r', '\n')


def split_glued_headers(text: str) -> str:
    text = GLUED_LATIN_HEADER_RE.sub(r'\1\n', text)
    return GLUED_CJK_HEADER_RE.sub(r'\1\n', text)


def count_paywalls(text: str) -> int:
    return len(PAYWALL_RE.findall(text))


def _inline_tail(line: str, end: int) -> str:
    tail = INLINE_LEAD_RE.sub('', line[end:])
    return INLINE_TRAIL_RE.sub('', tail).strip()


def split_episodes(raw_text: str) -> List[Episode]:
    """Split text into raw episode blocks in document order (no repair)."""
    text = split_glued_headers(normalize_newlines(raw_text))
    lines = text.split('\n')

    hits: List[Tuple[int, int, int, str]] = []  # (number, line_start, body_start, inline)
    offset = 0
    for line in lines:
        token = lex_header(line)
        if isinstance(token, HeaderMatch):
            line_end = offset + len(line)
            body_start = line_end + 1 if line_end < len(text) else line_end
            hits.append((token.number, offset, body_start, _inline_tail(line, token.end)))
        offset += len(line) + 1

    episodes = []
    for idx, (number, _, body_start, inline) in enumerate(hits):
        next_start = hits[idx + 1][1] if idx + 1 < len(hits) else len(text)
        body = text[body_start:next_start].strip()
        content = '\n'.join(part for part in (inline, body) if part).strip()
        episodes.append(Episode(number=number, text=content, paywall_count=count_paywalls(content)))
    return episodes


# ----------------------------------------------------------------------------
# Repair
# ----------------------------------------------------------------------------

def looks_like_toc(text: str) -> bool:
    """True for table-of-contents entries and page header/footer lines."""
    trimmed = text.strip()
    if not trimmed:
        return True
    if TOC_HEADING_RE.search(trimmed):
        return True
    if TOC_LEADER_RE.search(trimmed):
        return True
    return bool(PAGE_NUMBER_RE.match(trimmed))


def block_quality(text: str) -> int:
    """Body length, heavily penalized for short or TOC-like blocks."""
    trimmed = text.strip()
    if not trimmed:
        return EMPTY_PENALTY
    score = len(trimmed)
    if len(trimmed) < SHORT_BLOCK_CHARS and len(trimmed.split('\n')) <= SHORT_BLOCK_LINES:
        score -= SHORT_PENALTY
    if looks_like_toc(trimmed):
        score -= TOC_PENALTY
    return score


@dataclass
class RepairResult:
    """Repaired episodes plus the document order of the blocks that were kept."""
    episodes: List[Episode]
    source_order: List[int]


def repair_episodes(raw: List[Episode]) -> RepairResult:
    """Merge adjacent reprints, keep the best block per number, sort."""
    if len(raw) <= 1:
        if not raw:
            return RepairResult([], [])
        text = raw[0].text.strip()
        only = Episode(raw[0].number, text, count_paywalls(text))
        return RepairResult([only], [only.number])

    merged: List[List] = []  # [number, text]
    for episode in raw:
        text = episode.text.strip()
        if not text:
            continue
        if merged and merged[-1][0] == episode.number:
            merged[-1][1] = f"{merged[-1][1]}\n{text}".strip()
            continue
        merged.append([episode.number, text])

    best: Dict[int, Tuple[int, str]] = {}  # number -> (position in merged, text)
    for position, (number, text) in enumerate(merged):
        current = best.get(number)
        if current is None or block_quality(text) > block_quality(current[1]):
            best[number] = (position, text)

    kept = sorted(best.items(), key=lambda item: item[1][0])
    source_order = [number for number, _ in kept]

    episodes = [
        Episode(number, text, count_paywalls(text))
        for number, (_, text) in sorted(best.items())
    ]
    if len(merged) != len(episodes):
        logger.debug("Repair dropped %d duplicate block(s)", len(merged) - len(episodes))
    return RepairResult(episodes, source_order)


def parse_episodes(raw_text: str) -> List[Episode]:
    """Parse and repair: ordered, unique episodes."""
    raw = split_episodes(raw_text)
    episodes = repair_episodes(raw).episodes
    logger.info("Parsed %d episode block(s), kept %d", len(raw), len(episodes))
    return episodes


# ----------------------------------------------------------------------------
# Document header fields
# ----------------------------------------------------------------------------

TITLE_FIELD_RE = re.compile(r'TITLE\s*:', re.IGNORECASE)
TOTAL_FIELD_START_RE = re.compile(r'\bTOTAL_EPISODES\s*:', re.IGNORECASE)
COMPLETED_FIELD_START_RE = re.compile(r'\bIS_COMPLETED\s*:', re.IGNORECASE)
TOTAL_FIELD_RE = re.compile(r'TOTAL_EPISODES\s*:\s*(\d+)', re.IGNORECASE)
COMPLETED_FIELD_RE = re.compile(r'IS_COMPLETED\s*:\s*(true|false)', re.IGNORECASE)
HEADER_CANDIDATE_RE = re.compile(r'^EP\d+')
CJK_HEADER_CANDIDATE_RE = re.compile(r'^第\s*\d+\s*集')


@dataclass
class HeaderFields:
    title: Optional[str] = None
    total_episodes: Optional[int] = None
    is_completed: Optional[bool] = None


def _is_header_candidate(text: str) -> bool:
    trimmed = text.strip()
    if not trimmed:
        return False
    upper = trimmed.upper()
    if upper.startswith(('EPISODE', 'EP#', 'EP ')):
        return True
    return bool(HEADER_CANDIDATE_RE.match(upper) or CJK_HEADER_CANDIDATE_RE.match(trimmed))


def infer_fallback_title(sample: str) -> Optional[str]:
    """First markdown heading or 《…》 line that is not an episode header."""
    for raw_line in sample.split('\n')[:TITLE_SCAN_LINES]:
        line = raw_line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith(('TITLE:', 'TOTAL_EPISODES:', 'IS_COMPLETED:')):
            continue

        hashes = len(line) - len(line.lstrip('#'))
        if 0 < hashes <= 6 and hashes < len(line) and line[hashes].isspace():
            candidate = line[hashes:].strip()
            if candidate and not _is_header_candidate(candidate):
                return candidate
            continue

        if line.startswith('《') and line.endswith('》') and len(line) > 2:
            candidate = line[1:-1].strip()
            if candidate and not _is_header_candidate(candidate):
                return candidate
    return None


def parse_header_fields(text: str) -> HeaderFields:
    """Scrape TITLE / TOTAL_EPISODES / IS_COMPLETED from the document head.

    The three fields may share one line; TITLE runs until the next field
    name or end of line.
    """
    sample = normalize_newlines(text)[:META_SAMPLE_CHARS]
    fields = HeaderFields()

    title_match = TITLE_FIELD_RE.search(sample)
    if title_match:
        tail = sample[title_match.end():]
        ends = [len(tail)]
        for pattern in (TOTAL_FIELD_START_RE, COMPLETED_FIELD_START_RE):
            found = pattern.search(tail)
            if found:
                ends.append(found.start())
        newline = tail.find('\n')
        if newline >= 0:
            ends.append(newline)
        value = tail[:min(ends)].strip()
        if value:
            fields.title = value

    total_match = TOTAL_FIELD_RE.search(sample)
    if total_match:
        fields.total_episodes = int(total_match.group(1))

    completed_match = COMPLETED_FIELD_RE.search(sample)
    if completed_match:
        fields.is_completed = completed_match.group(1).lower() == 'true'

    if fields.title is None:
        fields.title = infer_fallback_title(sample)
    return fields
