"""Two-pass AI scoring orchestrator.

- Episode pass: per-episode structured evaluation, chunked into
  concurrent requests.
- Global pass: summary text, given the episode pass and the final
  numeric score parts.

Dimension scores are computed deterministically from brief signals and
the episode pass; model output never sets a score directly.
"""

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from tenacity import wait_exponential

from ..config import Config, Language, Tokenizer
from ..core.models import AIEvaluationError, Episode, ScoreBreakdown
from ..scoring.aggregate import AnalysisScoreResult, apply_redline_override, build_breakdown
from ..scoring.keywords import KeywordTable, get_keywords
from ..scoring.rules import RuleScorer
from .briefs import EpisodeBrief, build_briefs, validate_briefs
from .client import AIClient
from .guard import assert_english_output
from .presentation import (
    build_presentation,
    clamp,
    mean,
    normalize_episode_pass,
    normalize_range,
    ratio,
    sanitize_hook_type,
    validate_response,
)
from .prompts import (
    EPISODE_PASS_SYSTEM,
    GLOBAL_PASS_SYSTEM,
    build_episode_pass_prompt,
    build_global_pass_prompt,
)
from .retry import Result, retry_async
from .schemas import EpisodePass, EpisodePassItem, GlobalSummary

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)

EPISODE_PASS_LABEL = 'L2_EPISODE_PASS'
GLOBAL_PASS_LABEL = 'L2_GLOBAL_PASS'


# ============================================================================
# Deterministic breakdown
# ============================================================================

def compute_ai_breakdown(briefs: List[EpisodeBrief], episode_pass: List[Dict[str, Any]]) -> ScoreBreakdown:
    """Dimension totals from brief signals and episode-pass ratios."""
    count = len(briefs)
    avg_emotion = mean(b.emotion_raw for b in briefs)
    avg_ext = mean(b.conflict_ext_raw for b in briefs)
    avg_int = mean(b.conflict_int_raw for b in briefs)
    avg_conflict = avg_ext + avg_int
    paywall_count = sum(1 for b in briefs if b.paywall_flag)
    event_density = mean(len(b.key_events) for b in briefs)

    hook_coverage = ratio(episode_pass, lambda i: sanitize_hook_type(i['primaryHookType']) != 'None')
    peak_ratio = ratio(episode_pass, lambda i: i['health'] == 'PEAK')
    issue_ratio = ratio(episode_pass, lambda i: i['state'] == 'issue')
    neutral_ratio = ratio(episode_pass, lambda i: i['state'] == 'neutral')
    avg_signal = mean(i['signalPercent'] for i in episode_pass)

    conflict_balance = 1 - abs(avg_ext - avg_int) / max(1, avg_conflict)
    paywall_score = clamp(paywall_count / max(1, min(2, math.ceil(count / 20))), 0, 1)

    pay = (12
           + paywall_score * 12
           + normalize_range(avg_conflict, 0, 8) * 8
           + hook_coverage * 14
           + peak_ratio * 4)
    story = (7
             + normalize_range(avg_emotion, 0, 9) * 8
             + normalize_range(avg_signal, 0, 100) * 9
             + (1 - issue_ratio) * 4
             + (1 - neutral_ratio) * 2)
    market = (5
              + normalize_range(event_density, 1, 6) * 6
              + conflict_balance * 5
              + (1 - issue_ratio) * 4)
    potential = (2
                 + (1 - issue_ratio) * 3
                 + hook_coverage * 2
                 + (1 - normalize_range(avg_signal, 0, 100)) * 2
                 + (1 if paywall_count > 0 else 0))

    return build_breakdown(pay=pay, story=story, market=market, potential=potential)


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


# ============================================================================
# Orchestrator
# ============================================================================

class AIScoringOrchestrator:
    """Runs the episode and global passes and assembles the scored result."""

    def __init__(
        self,
        client: Optional[AIClient] = None,
        max_attempts: Optional[int] = None,
        chunk_size: Optional[int] = None,
        keywords: Optional[KeywordTable] = None,
    ):
        self.client = client or AIClient()
        self.max_attempts = max_attempts or Config.AI_MAX_ATTEMPTS
        self.chunk_size = chunk_size or Config.AI_EPISODE_CHUNK_SIZE
        self.retry_backoff = Config.AI_RETRY_BACKOFF_SECONDS
        self.keywords = keywords or get_keywords()

    async def aclose(self) -> None:
        """Release the model client's connections."""
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Structured calls
    # ------------------------------------------------------------------

    async def _structured_call(self, label: str, schema: Type[M], system: str, user: str) -> Result[M]:
        def validate(raw: Any) -> M:
            assert_english_output(raw)
            return schema.model_validate(raw)

        return await retry_async(
            lambda: self.client.generate_json(system, user, temperature=Config.AI_TEMPERATURE),
            validate,
            max_attempts=self.max_attempts,
            label=label,
            wait=wait_exponential(multiplier=self.retry_backoff, max=Config.AI_RETRY_BACKOFF_MAX_SECONDS),
        )

    @staticmethod
    def _unwrap(label: str, result: Result[M]) -> M:
        if not result.ok:
            logger.error("%s exhausted %d attempts: %s", label, result.attempts, result.error_message)
            raise AIEvaluationError(f"{label} failed after retries: {result.error_message}")
        return result.value

    async def _gather_fail_fast(self, label: str, calls: List[Callable[[], Awaitable[Result[M]]]]) -> List[M]:
        """Run calls concurrently, wait for all, then fail on the first failed result."""
        results = await asyncio.gather(*(call() for call in calls))
        failed = [r for r in results if not r.ok]
        if failed:
            logger.error("%s batch failed: %d of %d requests exhausted retries",
                         label, len(failed), len(results))
        return [self._unwrap(label, r) for r in results]

    async def run_episode_pass(self, briefs: List[EpisodeBrief]) -> List[EpisodePassItem]:
        total = len(briefs)
        chunks = chunked(briefs, self.chunk_size)
        calls = [
            (lambda chunk=chunk: self._structured_call(
                EPISODE_PASS_LABEL, EpisodePass, EPISODE_PASS_SYSTEM,
                build_episode_pass_prompt(chunk, total),
            ))
            for chunk in chunks
        ]
        logger.info("%s: %d episodes in %d request(s)", EPISODE_PASS_LABEL, total, len(calls))
        passes = await self._gather_fail_fast(EPISODE_PASS_LABEL, calls)
        return [item for episode_pass in passes for item in episode_pass.episodes]

    async def run_global_pass(
        self,
        episode_pass: List[Dict[str, Any]],
        breakdown: ScoreBreakdown,
        total_episodes: int,
    ) -> GlobalSummary:
        score_parts = {
            'pay': breakdown.pay,
            'story': breakdown.story,
            'market': breakdown.market,
            'potential': breakdown.potential,
            'overall100': breakdown.overall100,
            'grade': breakdown.grade.value,
        }
        prompt = build_global_pass_prompt(episode_pass, score_parts, total_episodes)
        result = await self._structured_call(GLOBAL_PASS_LABEL, GlobalSummary, GLOBAL_PASS_SYSTEM, prompt)
        return self._unwrap(GLOBAL_PASS_LABEL, result)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def evaluate(
        self,
        episodes: List[Episode],
        language: Language,
        tokenizer: Tokenizer,
        briefs: Optional[List[EpisodeBrief]] = None,
    ) -> AnalysisScoreResult:
        """Score a document with the two-pass AI run."""
        briefs = briefs or build_briefs(episodes, language, tokenizer, self.keywords)
        validate_briefs(briefs)

        raw_items = await self.run_episode_pass(briefs)
        episode_pass = normalize_episode_pass(raw_items, briefs)
        base = compute_ai_breakdown(briefs, episode_pass)

        summary = await self.run_global_pass(episode_pass, base, len(briefs))

        full_text = '\n'.join(e.text for e in episodes)
        redline = RuleScorer(language, tokenizer, self.keywords).detect_redline(full_text)
        breakdown = apply_redline_override(base, redline.hit)
        if redline.hit:
            logger.warning("Redline terms detected (%d); grade forced to %s",
                           len(redline.evidence), breakdown.grade.value)

        result = AnalysisScoreResult(
            breakdown=breakdown,
            redline_hit=redline.hit,
            redline_evidence=redline.evidence,
            presentation=build_presentation(briefs, episode_pass, summary),
        )
        validated = validate_response(result.to_dict(), len(briefs), redline.hit)
        result.presentation = validated['presentation']

        logger.info("AI score: total110=%.2f overall100=%d grade=%s",
                    breakdown.total110, breakdown.overall100, breakdown.grade.value)
        return result


async def evaluate_ai_score(
    episodes: List[Episode],
    language: Language,
    tokenizer: Tokenizer,
    client: Optional[AIClient] = None,
) -> AnalysisScoreResult:
    """Convenience wrapper around AIScoringOrchestrator.evaluate().

    A client built here is closed before returning; a passed-in client is
    left open for the caller.
    """
    orchestrator = AIScoringOrchestrator(client=client)
    try:
        return await orchestrator.evaluate(episodes, language, tokenizer)
    finally:
        if client is None:
            await orchestrator.aclose()
