"""Presentation payload: builder, normalizer and response validator.

The builder assembles the payload from deterministic brief signals and
the (already validated) model output. The normalizer accepts a payload
from any source, repairs soft gaps and rejects hard contract violations
with PresentationContractError.
"""

import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ..core.models import PresentationContractError
from ..scoring.aggregate import (
    DIMENSION_MAX,
    REDLINE_OVERALL_CAP,
    TOTAL_MAX,
    overall_from_total,
    round_half_up,
)
from .briefs import EpisodeBrief
from .schemas import ANCHOR_SLOTS, PHASE_NAMES, EpisodePassItem, GlobalSummary, Presentation

logger = logging.getLogger(__name__)

WS_RE = re.compile(r'\s+')

HOOK_TYPE_MAX = 48
NO_HOOK_TYPE = 'None'
PHASE_VALUE_MAX = 100

# compact_text limits per field
SUMMARY_MAX = 280
NARRATIVE_MAX = 220
CAPTION_MAX = 200
INTEGRITY_MAX = 260
LABEL_MAX = 72
REASON_MAX = 220
ISSUE_TEXT_MAX = 240
HIGHLIGHT_MAX = 240

DEFAULT_ROW = {
    'health': 'FAIR',
    'primaryHookType': NO_HOOK_TYPE,
    'aiHighlight': 'No highlight available for this episode.',
}

GRADES = ('S+', 'S', 'A+', 'A', 'B', 'C')
LOWEST_GRADE = 'C'
SUM_TOLERANCE = 0.01


# ============================================================================
# Small numeric / text helpers
# ============================================================================

def compact_text(value: str, max_len: int) -> str:
    text = WS_RE.sub(' ', value).strip()
    if len(text) <= max_len:
        return text
    return f"{text[:max_len - 1]}…"


def sanitize_hook_type(value: str) -> str:
    text = WS_RE.sub(' ', value).strip()
    if not text:
        return NO_HOOK_TYPE
    compact = f"{text[:HOOK_TYPE_MAX - 1]}…" if len(text) > HOOK_TYPE_MAX else text
    return NO_HOOK_TYPE if compact.lower() == 'none' else compact


def clamp(value: float, low: float, high: float) -> float:
    if value is None or not math.isfinite(value):
        return low
    return max(low, min(high, value))


def round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def clamp_episode(episode: float, total: int) -> int:
    return max(1, min(total, round_half_up(episode)))


def normalize_range(value: float, low: float, high: float) -> float:
    if value is None or not math.isfinite(value) or high <= low:
        return 0.0
    return clamp((value - low) / (high - low), 0, 1)


def normalize_to_100(values: List[float]) -> List[int]:
    peak = max([0.0] + list(values))
    if peak <= 0:
        return [0 for _ in values]
    return [round_half_up(max(0.0, v) / peak * 100) for v in values]


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def ratio(items: List[Any], predicate: Callable[[Any], bool]) -> float:
    if not items:
        return 0.0
    return sum(1 for item in items if predicate(item)) / len(items)


# ============================================================================
# Episode pass normalization
# ============================================================================

def normalize_episode_pass(items: List[EpisodePassItem], briefs: List[EpisodeBrief]) -> List[Dict[str, Any]]:
    """One cleaned item per brief, first occurrence wins. Missing episodes are fatal."""
    by_episode: Dict[int, EpisodePassItem] = {}
    for item in items:
        by_episode.setdefault(item.episode, item)

    normalized = []
    for brief in briefs:
        matched = by_episode.get(brief.episode)
        if matched is None:
            raise PresentationContractError(f"Episode pass missing episode {brief.episode}.")
        data = matched.model_dump()
        data.update({
            'primaryHookType': sanitize_hook_type(matched.primaryHookType),
            'aiHighlight': compact_text(matched.aiHighlight, 220),
            'issueLabel': compact_text(matched.issueLabel, LABEL_MAX),
            'issueReason': compact_text(matched.issueReason, ISSUE_TEXT_MAX),
            'suggestion': compact_text(matched.suggestion, ISSUE_TEXT_MAX),
            'pacingScore': round1(clamp(matched.pacingScore, 0, 10)),
            'signalPercent': round_half_up(clamp(matched.signalPercent, 0, 100)),
        })
        normalized.append(data)
    return normalized


# ============================================================================
# Builder
# ============================================================================

def build_emotion_series(briefs: List[EpisodeBrief]) -> List[Dict[str, Any]]:
    normalized = normalize_to_100([max(0, b.emotion_raw) for b in briefs])
    series = []
    for i, brief in enumerate(briefs):
        value = normalized[i]
        prev = normalized[i - 1] if i > 0 else value
        nxt = normalized[i + 1] if i + 1 < len(normalized) else value
        series.append({'episode': brief.episode, 'value': round_half_up((prev + value * 2 + nxt) / 4)})
    return series


def build_emotion_anchors(series: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not series:
        raise PresentationContractError("Emotion chart requires non-empty series.")
    picks = [series[0], series[len(series) // 2], series[-1]]
    return [
        {'slot': slot, 'episode': point['episode'], 'value': point['value']}
        for slot, point in zip(ANCHOR_SLOTS, picks)
    ]


def build_conflict_phases(briefs: List[EpisodeBrief]) -> List[Dict[str, Any]]:
    """Six narrative phases of summed external/internal conflict, scaled into 0..100."""
    phases = [{'phase': name, 'ext': 0.0, 'int': 0.0} for name in PHASE_NAMES]
    denominator = max(1, len(briefs) - 1)
    for i, brief in enumerate(briefs):
        phase = phases[min(5, math.floor(i / denominator * 6))]
        phase['ext'] += max(0, brief.conflict_ext_raw)
        phase['int'] += max(0, brief.conflict_int_raw)

    peak = max(max(p['ext'], p['int']) for p in phases)
    scale = PHASE_VALUE_MAX / peak if peak > PHASE_VALUE_MAX else 1.0
    for phase in phases:
        phase['ext'] = round_half_up(phase['ext'] * scale)
        phase['int'] = round_half_up(phase['int'] * scale)
    return phases


def build_presentation(
    briefs: List[EpisodeBrief],
    episode_pass: List[Dict[str, Any]],
    summary: GlobalSummary,
) -> Dict[str, Any]:
    """Assemble the presentation payload from briefs and model output."""
    series = build_emotion_series(briefs)
    overview = summary.diagnosisOverview

    details = [
        {
            'episode': item['episode'],
            'issueCategory': item['issueCategory'],
            'issueLabel': compact_text(item['issueLabel'], LABEL_MAX),
            'issueReason': compact_text(item['issueReason'], ISSUE_TEXT_MAX),
            'suggestion': compact_text(item['suggestion'], ISSUE_TEXT_MAX),
            'hookType': sanitize_hook_type(item['primaryHookType']),
            'emotionLevel': item['emotionLevel'],
            'conflictDensity': item['conflictDensity'],
            'pacingScore': round1(clamp(item['pacingScore'], 0, 10)),
            'signalPercent': round_half_up(clamp(item['signalPercent'], 0, 100)),
        }
        for item in episode_pass
        if item['state'] != 'optimal'
    ]

    return {
        'commercialSummary': compact_text(summary.commercialSummary, SUMMARY_MAX),
        'dimensionNarratives': {
            'monetization': compact_text(summary.dimensionNarratives.monetization, NARRATIVE_MAX),
            'story': compact_text(summary.dimensionNarratives.story, NARRATIVE_MAX),
            'market': compact_text(summary.dimensionNarratives.market, NARRATIVE_MAX),
        },
        'charts': {
            'emotion': {
                'series': series,
                'anchors': build_emotion_anchors(series),
                'caption': compact_text(summary.chartCaptions.emotion, CAPTION_MAX),
            },
            'conflict': {
                'phases': build_conflict_phases(briefs),
                'caption': compact_text(summary.chartCaptions.conflict, CAPTION_MAX),
            },
        },
        'episodeRows': [
            {
                'episode': item['episode'],
                'health': item['health'],
                'primaryHookType': sanitize_hook_type(item['primaryHookType']),
                'aiHighlight': compact_text(item['aiHighlight'], HIGHLIGHT_MAX),
            }
            for item in episode_pass
        ],
        'diagnosis': {
            'matrix': [{'episode': item['episode'], 'state': item['state']} for item in episode_pass],
            'details': details,
            'overview': {
                'integritySummary': compact_text(overview.integritySummary, INTEGRITY_MAX),
                'pacingFocusEpisode': clamp_episode(overview.pacingFocusEpisode, len(briefs)),
                'pacingIssueLabel': compact_text(overview.pacingIssueLabel, LABEL_MAX),
                'pacingIssueReason': compact_text(overview.pacingIssueReason, REASON_MAX),
            },
        },
    }


# ============================================================================
# Normalizer
# ============================================================================

def _fail(message: str) -> None:
    raise PresentationContractError(f"Invalid presentation payload: {message}")


def _index_by_episode(items: List[Dict[str, Any]], name: str, episode_count: int) -> Dict[int, Dict[str, Any]]:
    indexed: Dict[int, Dict[str, Any]] = {}
    for item in items:
        episode = item.get('episode')
        if not isinstance(episode, int) or isinstance(episode, bool) or not 1 <= episode <= episode_count:
            _fail(f"{name} has episode {episode!r} outside 1..{episode_count}.")
        if episode in indexed:
            _fail(f"{name} has duplicate episode {episode}.")
        indexed[episode] = item
    return indexed


def _check_no_empty_strings(value: Any, path: str = '$') -> None:
    if isinstance(value, str):
        if not value.strip():
            _fail(f"empty string at {path}.")
    elif isinstance(value, list):
        for i, child in enumerate(value):
            _check_no_empty_strings(child, f"{path}[{i}]")
    elif isinstance(value, dict):
        for key, child in value.items():
            _check_no_empty_strings(child, f"{path}.{key}")


def normalize_presentation(payload: Dict[str, Any], episode_count: int) -> Dict[str, Any]:
    """Repair soft gaps in a presentation payload and enforce its hard invariants.

    Soft (repaired): missing episode rows get neutral defaults; an
    `optimal` matrix episode that also has an issue detail becomes
    `neutral`; missing emotion points carry the previous value forward.

    Hard (PresentationContractError): duplicate or out-of-range episodes,
    matrix not covering 1..N, anchors/phases not in their fixed shape,
    details for optimal episodes, empty strings, schema violations.
    """
    if episode_count < 1:
        _fail("episode count must be >= 1.")
    try:
        charts = payload['charts']
        diagnosis = payload['diagnosis']
        emotion = charts['emotion']
        conflict = charts['conflict']
    except (KeyError, TypeError) as e:
        _fail(f"missing section {e}.")

    # Episode rows: fill gaps
    rows = _index_by_episode(list(payload.get('episodeRows') or []), 'episodeRows', episode_count)
    filled_rows = []
    for episode in range(1, episode_count + 1):
        if episode not in rows:
            logger.info("Filling missing episode row %d with defaults", episode)
        filled_rows.append(rows.get(episode) or {'episode': episode, **DEFAULT_ROW})

    # Matrix must already cover 1..N
    matrix_items = list(diagnosis.get('matrix') or [])
    matrix = _index_by_episode(matrix_items, 'diagnosis.matrix', episode_count)
    if len(matrix_items) != episode_count or sorted(matrix) != list(range(1, episode_count + 1)):
        _fail(f"diagnosis.matrix must cover episodes 1..{episode_count} exactly.")

    details = list(diagnosis.get('details') or [])
    detail_episodes = set(_index_by_episode(details, 'diagnosis.details', episode_count))
    new_matrix = []
    for episode in range(1, episode_count + 1):
        cell = dict(matrix[episode])
        if cell.get('state') == 'optimal' and episode in detail_episodes:
            logger.info("Downgrading episode %d from optimal to neutral", episode)
            cell['state'] = 'neutral'
        new_matrix.append(cell)
    states = {cell['episode']: cell.get('state') for cell in new_matrix}
    for episode in sorted(detail_episodes):
        if states[episode] not in ('issue', 'neutral'):
            _fail(f"diagnosis.details includes episode {episode} with state {states[episode]!r}.")

    # Emotion series: carry forward gaps
    points = _index_by_episode(list(emotion.get('series') or []), 'charts.emotion.series', episode_count)
    series = []
    previous = 0
    for episode in range(1, episode_count + 1):
        value = points.get(episode, {}).get('value')
        if value is None:
            value = previous
        series.append({'episode': episode, 'value': value})
        previous = value

    anchors = list(emotion.get('anchors') or [])
    if [a.get('slot') for a in anchors] != list(ANCHOR_SLOTS):
        _fail("charts.emotion.anchors must be exactly Start, Mid, End.")

    phases = list(conflict.get('phases') or [])
    if [p.get('phase') for p in phases] != list(PHASE_NAMES):
        _fail("charts.conflict.phases must be the six phases in order.")
    for phase in phases:
        for key in ('ext', 'int'):
            value = phase.get(key)
            if not isinstance(value, (int, float)) or not 0 <= value <= PHASE_VALUE_MAX:
                _fail(f"charts.conflict phase {phase.get('phase')} {key}={value!r} outside 0..100.")

    overview = dict(diagnosis.get('overview') or {})
    focus = overview.get('pacingFocusEpisode')
    if isinstance(focus, int) and not 1 <= focus <= episode_count:
        _fail(f"diagnosis.overview.pacingFocusEpisode {focus} outside 1..{episode_count}.")

    result = {
        **payload,
        'charts': {
            'emotion': {**emotion, 'series': series, 'anchors': anchors},
            'conflict': {**conflict, 'phases': phases},
        },
        'episodeRows': filled_rows,
        'diagnosis': {**diagnosis, 'matrix': new_matrix, 'details': details, 'overview': overview},
    }
    _check_no_empty_strings(result)

    try:
        return Presentation.model_validate(result).model_dump()
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        where = '.'.join(str(part) for part in first.get('loc', ()))
        _fail(f"{where}: {first.get('msg', 'unknown error')}")


# ============================================================================
# Response validator
# ============================================================================

def validate_score(score: Dict[str, Any], redline_hit: bool = False) -> None:
    """Hard numeric checks on the response score block."""
    try:
        total = float(score['total_110'])
        overall = score['overall_100']
        grade = score['grade']
        parts = score['breakdown_110']
        dims = {name: float(parts[name]) for name in DIMENSION_MAX}
    except (KeyError, TypeError, ValueError) as e:
        raise PresentationContractError(f"Invalid score payload: missing or malformed {e}.")

    for name, value in dims.items():
        if not 0 <= value <= DIMENSION_MAX[name]:
            raise PresentationContractError(f"Invalid score payload: {name}={value} outside 0..{DIMENSION_MAX[name]}.")
    if not 0 <= total <= TOTAL_MAX:
        raise PresentationContractError(f"Invalid score payload: total_110={total} outside 0..{TOTAL_MAX}.")
    if not isinstance(overall, int) or not 0 <= overall <= 100:
        raise PresentationContractError(f"Invalid score payload: overall_100={overall!r} outside 0..100.")
    if grade not in GRADES:
        raise PresentationContractError(f"Invalid score payload: unknown grade {grade!r}.")
    if abs(sum(dims.values()) - total) > SUM_TOLERANCE:
        raise PresentationContractError("Invalid score payload: total_110 does not equal the breakdown sum.")

    expected = overall_from_total(total)
    if redline_hit:
        expected = min(expected, REDLINE_OVERALL_CAP)
        if grade != LOWEST_GRADE:
            raise PresentationContractError("Invalid score payload: redline hit requires the lowest grade.")
    if overall != expected:
        raise PresentationContractError(
            f"Invalid score payload: overall_100={overall} but total_110 implies {expected}."
        )


def validate_response(
    response: Dict[str, Any],
    episode_count: int,
    redline_hit: bool = False,
) -> Dict[str, Any]:
    """Validate a full scoring response; returns it with a normalized presentation."""
    validate_score(response.get('score') or {}, redline_hit)
    presentation: Optional[Dict[str, Any]] = response.get('presentation')
    if presentation is None:
        raise PresentationContractError("Invalid presentation payload: missing presentation.")
    return {**response, 'presentation': normalize_presentation(presentation, episode_count)}
