"""Preflight validation and ingest metadata."""

import logging
from typing import List, Optional

from ..config import LanguageMode
from .language import detect_language, detect_language_mode, detect_tokenizer
from .models import (
    CompletionState,
    DocumentMeta,
    Episode,
    IngestMetadata,
    IngestMode,
    IssueCode,
    ParseResult,
    PreflightBlockedError,
    PreflightIssue,
    Severity,
)
from .parser import normalize_newlines, parse_header_fields, repair_episodes, split_episodes

logger = logging.getLogger(__name__)

MAX_PAYWALLS = 2
OUT_OF_ORDER_PREVIEW = 5
MISSING_PREVIEW = 10


def _preview(values: List[str], limit: int, sep: str = ', ') -> str:
    text = sep.join(values[:limit])
    return text + ('…' if len(values) > limit else '')


def completion_state(is_completed: Optional[bool]) -> CompletionState:
    if is_completed is True:
        return CompletionState.COMPLETED
    if is_completed is False:
        return CompletionState.INCOMPLETE
    return CompletionState.UNKNOWN


def coverage_ratio(observed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return min(1.0, observed / total)


class PreflightValidator:
    """Runs structural checks over parsed episodes and header fields."""

    def __init__(self):
        self.errors: List[PreflightIssue] = []
        self.warnings: List[PreflightIssue] = []

    def _push(self, severity: Severity, code: IssueCode, message: str) -> None:
        issue = PreflightIssue(code=code, message=message, severity=severity)
        if severity == Severity.FATAL:
            self.errors.append(issue)
        else:
            self.warnings.append(issue)

    def validate(
        self,
        episodes: List[Episode],
        source_order: List[int],
        language_mode: LanguageMode,
        declared_total: Optional[int],
        total_for_scoring: int,
    ) -> None:
        """Collect issues into self.errors / self.warnings.

        Args:
            episodes: Repaired episodes.
            source_order: Episode numbers of the kept blocks in document order.
            language_mode: Detected script mix of the episode corpus.
            declared_total: TOTAL_EPISODES header value, if any.
            total_for_scoring: Declared total, else highest episode number.
        """
        if not episodes:
            self._push(
                Severity.FATAL, IssueCode.NO_EPISODE_HEADERS,
                'No episode headers found. Please format input with EP/EPISODE/EP <N>.',
            )

        if declared_total is not None and declared_total < 1:
            self._push(Severity.FATAL, IssueCode.INVALID_TOTAL_EPISODES,
                       'TOTAL_EPISODES must be at least 1.')

        if language_mode == LanguageMode.MIXED:
            self._push(Severity.FATAL, IssueCode.MIXED_LANGUAGE,
                       'Input must be single-language only (pure Chinese or pure English).')

        self._check_order(source_order)

        if declared_total is not None:
            self._check_missing(episodes, declared_total)

        self._check_paywalls(episodes, total_for_scoring)

    def _check_order(self, source_order: List[int]) -> None:
        disorder = [
            f'{prev}->{current}'
            for prev, current in zip(source_order, source_order[1:])
            if current < prev
        ]
        if disorder:
            self._push(Severity.FATAL, IssueCode.OUT_OF_ORDER_EPISODE,
                       f'Episode headers are out of order: {_preview(disorder, OUT_OF_ORDER_PREVIEW)}.')

    def _check_missing(self, episodes: List[Episode], declared_total: int) -> None:
        present = {e.number for e in episodes}
        missing = [str(n) for n in range(1, declared_total + 1) if n not in present]
        if missing:
            self._push(Severity.WARN, IssueCode.MISSING_EPISODE,
                       f'Missing episode numbers: {_preview(missing, MISSING_PREVIEW)}.')

    def _check_paywalls(self, episodes: List[Episode], total_for_scoring: int) -> None:
        total_paywalls = 0
        paywall_episodes = []
        for episode in episodes:
            if episode.paywall_count > 1:
                self._push(Severity.FATAL, IssueCode.MULTI_PAYWALL_IN_EPISODE,
                           f'Multiple [PAYWALL] markers found in EP {episode.number}.')
            if episode.paywall_count > 0:
                paywall_episodes.append(episode.number)
            total_paywalls += episode.paywall_count

        if total_paywalls > MAX_PAYWALLS:
            self._push(Severity.FATAL, IssueCode.TOO_MANY_PAYWALLS,
                       f'At most {MAX_PAYWALLS} [PAYWALL] markers are allowed.')

        if total_for_scoring > 0:
            out_of_range = [n for n in paywall_episodes if n < 2 or n > total_for_scoring - 1]
            if out_of_range:
                self._push(Severity.WARN, IssueCode.PAYWALL_OUT_OF_RANGE,
                           '[PAYWALL] must appear between EP 2 and the second-to-last EP.')


def parse_and_preflight(raw_text: str) -> ParseResult:
    """Parse a script document and run every preflight check.

    Args:
        raw_text: The full document text.

    Returns:
        ParseResult with document meta, ingest metadata, repaired episodes
        and the fatal/warning issues found.
    """
    text = normalize_newlines(raw_text)
    repaired = repair_episodes(split_episodes(text))
    episodes = repaired.episodes

    episode_corpus = '\n'.join(e.text for e in episodes)
    corpus = episode_corpus if episode_corpus else text
    language_mode = detect_language_mode(corpus)
    language = detect_language(corpus)
    tokenizer = detect_tokenizer(language)

    fields = parse_header_fields(text)
    declared_total = fields.total_episodes
    inferred_total = max((e.number for e in episodes), default=0)
    total_for_scoring = declared_total if declared_total is not None else inferred_total
    observed = len(episodes)

    validator = PreflightValidator()
    validator.validate(episodes, repaired.source_order, language_mode, declared_total, total_for_scoring)

    ingest = IngestMetadata(
        declared_total=declared_total,
        inferred_total=inferred_total,
        total_for_scoring=total_for_scoring,
        observed_count=observed,
        completion_state=completion_state(fields.is_completed),
        coverage_ratio=coverage_ratio(observed, total_for_scoring),
        mode=IngestMode.OFFICIAL if not validator.errors and not validator.warnings else IngestMode.PROVISIONAL,
    )
    meta = DocumentMeta(
        title=fields.title,
        total_episodes=total_for_scoring if total_for_scoring > 0 else None,
        is_completed=fields.is_completed,
        language=language,
        tokenizer=tokenizer,
    )

    for issue in validator.errors + validator.warnings:
        logger.info("Preflight %s %s: %s", issue.severity.value, issue.code.value, issue.message)
    logger.info(
        "Parsed %d episode(s), total for scoring %d, mode %s",
        observed, total_for_scoring, ingest.mode.value,
    )

    return ParseResult(
        meta=meta,
        ingest=ingest,
        episodes=episodes,
        errors=validator.errors,
        warnings=validator.warnings,
    )


def ensure_scorable(result: ParseResult) -> ParseResult:
    """Raise PreflightBlockedError when fatal issues block scoring."""
    if result.errors:
        raise PreflightBlockedError(result.errors)
    return result
