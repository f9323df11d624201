"""Deterministic rule scorer.

Applies the keyword/threshold audit rules across four dimensions
(monetization, story, market, improvement potential) and aggregates the
resulting audit items into a ScoreBreakdown with the redline override
applied last.

Every rule has the same shape: count keyword hits in a bounded slice of
the script, compare against fixed thresholds, and pick the highest tier
that qualifies.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..config import Language, Tokenizer
from ..core.language import CJK_RE
from ..core.metrics import CJK_TOKENS_PER_WORD
from ..core.models import (
    AuditItem,
    AuditStatus,
    ConfidenceFlag,
    Episode,
    EpisodeWindow,
    Fail,
    IngestMetadata,
    Ok,
    Warn,
)
from .aggregate import (
    AnalysisScoreResult,
    aggregate_scores,
    apply_redline_override,
    clamp,
    round_half_up,
    round_to,
    score_of,
    sum_by_prefix,
)
from .keywords import KeywordTable, collect_matched_terms, count_terms, get_keywords

logger = logging.getLogger(__name__)

MAX_EVIDENCE = 12
OK_RATIO = 0.6

# ============================================================================
# Rule tables
# ============================================================================

PRIMARY_PAYWALL_RANGES = [(4, 9), (8, 14), (11, 17)]

# (minimum total, maximum total, secondary range)
SECONDARY_PAYWALL_RANGES = [
    (30, 50, (20, 25)),
    (51, 70, (30, 40)),
    (71, 100, (50, 60)),
]
SECONDARY_PAYWALL_MIN_TOTAL = 30

# Hook types in precedence order with (primary points, secondary points).
HOOK_TIERS = [
    ('decision', 'paywall.hook_decision', 5, 3),
    ('crisis', 'paywall.hook_crisis', 4, 3),
    ('information', 'paywall.hook_information', 3, 2),
    ('emotion', 'paywall.hook_emotion', 2, 1),
]
NO_HOOK = 'none'
SECONDARY_NO_ESCALATION_CAP = 1

EPISODIC_HOOK_SAMPLES = [2, 4, 8, 10]
EPISODIC_HOOK_TAIL_CHARS = 200

NEXT_HEAD_CHARS = 1800
MECHANISM_MIN_HITS = 2
ROLE_TAG_SAMPLES = 10

# Repair issue types, most expensive first. Audit ids not listed fall back
# to 'language'.
CORE_ISSUE_IDS = {'story.core_driver', 'story.character.male', 'story.character.female'}
STRUCTURE_ISSUE_IDS = {
    'pay.paywall.primary.position',
    'pay.paywall.primary.previous',
    'pay.paywall.primary.next',
    'pay.paywall.secondary.position',
    'pay.paywall.secondary.previous',
    'pay.paywall.secondary.next',
    'pay.density.drama',
    'pay.density.motivation',
    'pay.density.foreshadow',
    'pay.visual_hammer',
}
HOOK_ISSUE_IDS = {'pay.paywall.primary.hook', 'pay.paywall.secondary.hook', 'pay.hooks.episodic'}

REPAIR_COST_SCORES = {
    'language': 3,
    'hook': 2,
    'structure': 1,
    'core': 0,
}

REPAIR_COST_REASONS = {
    'language': 'Primary issues are language/localization; estimated effort <3h.',
    'hook': 'Primary issues are hook optimization; estimated effort 3-10h.',
    'structure': 'Issues require structural revision; estimated effort 1-3d.',
    'core': 'Issues require core rewrite; estimated effort >10d.',
}


# ============================================================================
# Audit item helpers
# ============================================================================

def _fmt(value: float) -> str:
    """Compact number text: 2 -> '2', 1.75 -> '1.75'."""
    return f'{value:g}'


def redact_evidence(evidence: List[str]) -> List[str]:
    """Drop non-English evidence text so only the target language is surfaced."""
    redacted = []
    for i, text in enumerate(evidence[:MAX_EVIDENCE]):
        text = text.strip()
        if text and CJK_RE.search(text):
            redacted.append(f'Non-English source evidence omitted ({i + 1}).')
        else:
            redacted.append(text)
    return redacted


def make_audit_item(
    item_id: str,
    score: float,
    max_score: float,
    reason: str,
    evidence: Optional[List[str]] = None,
    status: Optional[AuditStatus] = None,
    confidence_flag: Optional[ConfidenceFlag] = None,
) -> AuditItem:
    """Build an audit item with the score clamped to [0, max].

    Status defaults to Ok when the score reaches 60% of max and Warn
    otherwise; callers pass an explicit status to override.
    """
    final_score = round_to(clamp(score, 0, max_score))
    if status is None:
        status = Ok() if final_score >= max_score * OK_RATIO else Warn(reason)
    return AuditItem(
        id=item_id,
        status=status,
        score=final_score,
        max=max_score,
        reason=reason,
        evidence=redact_evidence(evidence or []),
        confidence_flag=confidence_flag,
    )


def evidence_from_counts(counts: Dict[str, int]) -> List[str]:
    return [f'{label}:{count}' for label, count in counts.items()]


def boolean_evidence(flags: Dict[str, bool]) -> List[str]:
    return [f"{label}:{'yes' if flag else 'no'}" for label, flag in flags.items()]


def secondary_paywall_range(total_episodes: int) -> Optional[Tuple[int, int]]:
    for low, high, episode_range in SECONDARY_PAYWALL_RANGES:
        if low <= total_episodes <= high:
            return episode_range
    return None


def infer_primary_issue_type(item_ids: List[str]) -> str:
    """Most expensive issue type among the given audit ids: core > structure > hook > language."""
    ids = set(item_ids)
    if ids & CORE_ISSUE_IDS:
        return 'core'
    if ids & STRUCTURE_ISSUE_IDS:
        return 'structure'
    if ids & HOOK_ISSUE_IDS:
        return 'hook'
    return 'language'


def estimate_total_words(episodes: List[Episode], tokenizer: Tokenizer) -> int:
    """Word estimate used when L1 metrics are not supplied."""
    text = '\n'.join(e.text for e in episodes)
    if tokenizer == Tokenizer.WHITESPACE:
        return len(text.split())
    return round_half_up(len(text) / CJK_TOKENS_PER_WORD)


@dataclass
class HookResult:
    type: str
    score: float
    evidence: List[str] = field(default_factory=list)


@dataclass
class RoleTagResult:
    unique_tag_count: int
    type_count: int
    sample_tags: List[str]


@dataclass
class AudienceProfile:
    genre: str
    core_share: float
    span_share: float
    breakdown: List[str]


@dataclass
class RedlineResult:
    hit: bool
    evidence: List[str]


# ============================================================================
# Rule scorer
# ============================================================================

class RuleScorer:
    """Deterministic audit scorer for one parsed document."""

    def __init__(self, language: Language, tokenizer: Tokenizer, keywords: Optional[KeywordTable] = None):
        self.language = language
        self.tokenizer = tokenizer
        self.keywords = keywords or get_keywords()

    # ------------------------------------------------------------------
    # Keyword helpers
    # ------------------------------------------------------------------

    def _terms(self, category: str) -> List[str]:
        return self.keywords.terms(category, self.language)

    def _count(self, text: str, category: str) -> int:
        return count_terms(text, self._terms(category), self.language)

    def _matched(self, text: str, category: str) -> List[str]:
        return collect_matched_terms(text, self._terms(category), self.language)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def score(
        self,
        episodes: List[Episode],
        windows: List[EpisodeWindow],
        total_words: int = 0,
        ingest: Optional[IngestMetadata] = None,
    ) -> AnalysisScoreResult:
        """Run every rule and aggregate the audit items."""
        episode_map = {e.number: e for e in episodes}
        window_map = {w.episode: w for w in windows}
        full_script = '\n'.join(e.text for e in episodes)

        observed = ingest.observed_count if ingest else len(episodes)
        total_for_scoring = ingest.total_for_scoring if ingest else observed
        total_words = max(1, total_words or estimate_total_words(episodes, self.tokenizer))

        paywall_episodes = sorted(e.number for e in episodes if e.paywall_count > 0)
        first_paywall = paywall_episodes[0] if paywall_episodes else None
        second_paywall = paywall_episodes[1] if len(paywall_episodes) > 1 else None

        items: List[AuditItem] = []
        items.extend(self._evaluate_opening(episode_map))
        items.extend(self._evaluate_primary_paywall(first_paywall, episode_map, window_map))
        items.extend(self._evaluate_secondary_paywall(
            second_paywall, total_for_scoring, observed, episode_map, window_map,
        ))
        items.append(self._evaluate_episodic_hooks(episode_map))
        items.extend(self._evaluate_density(observed, episodes))
        items.extend(self._evaluate_story(observed, full_script, total_words))

        market_items, redline = self._evaluate_market(observed, full_script)
        items.extend(market_items)
        items.extend(self._evaluate_potential(items))

        breakdown = apply_redline_override(aggregate_scores(items), redline.hit)
        if redline.hit:
            logger.warning("Redline terms detected (%d); grade forced to %s",
                           len(redline.evidence), breakdown.grade.value)
        logger.info("Rule score: total110=%.2f overall100=%d grade=%s",
                    breakdown.total110, breakdown.overall100, breakdown.grade.value)

        return AnalysisScoreResult(
            breakdown=breakdown,
            redline_hit=redline.hit,
            redline_evidence=redline.evidence,
            items=items,
        )

    # ------------------------------------------------------------------
    # 1.1 Opening (10)
    # ------------------------------------------------------------------

    def _evaluate_opening(self, episode_map: Dict[int, Episode]) -> List[AuditItem]:
        def text_of(number: int) -> str:
            return episode_map[number].text if number in episode_map else ''

        ep1, ep2, ep3 = text_of(1), text_of(2), text_of(3)
        later = '\n'.join(e.text for n, e in sorted(episode_map.items()) if n >= 4)
        male_terms = self._terms('opening.male_visual') + self._terms('opening.male_persona')

        male_visual = self._matched(ep2[:1000], 'opening.male_visual')
        male_persona = self._matched(ep2[:1000], 'opening.male_persona')
        ep2_or_3 = collect_matched_terms(f'{ep2[:1000]}\n{ep3[:1000]}', male_terms, self.language)
        after_ep3 = collect_matched_terms(later[:3000], male_terms, self.language)

        if len(male_visual) >= 2 and len(male_persona) >= 1:
            male_score = 5
            male_reason = 'Episode 2 opening (first 1000 chars) meets visual/persona tag thresholds.'
        elif ep2_or_3:
            male_score = 3
            male_reason = 'Partial male-lead visual/persona signals detected in Episodes 2-3.'
        elif after_ep3:
            male_score = 1
            male_reason = 'Male-lead signal appears after Episode 3, scored as late entry.'
        else:
            male_score = 0
            male_reason = 'No stable male-lead attractive-entry signal found in the first 3 episodes.'

        female_conflict = self._matched(ep1[:1500], 'opening.female_conflict')
        female_motivation = self._matched(ep1[:1500], 'opening.female_motivation')
        female_presence = self._matched(ep1[:1200], 'opening.female_presence')

        if female_conflict and female_motivation:
            female_score = 5
            female_reason = 'Episode 1 contains both conflict and motivation evidence.'
        elif female_conflict:
            female_score = 3
            female_reason = 'Episode 1 has conflict but motivation is under-expressed.'
        elif female_presence:
            female_score = 1
            female_reason = 'Episode 1 has character presence only, with weak story propulsion.'
        else:
            female_score = 0
            female_reason = 'No story-driven female-lead entry detected in Episode 1.'

        return [
            make_audit_item('pay.opening.male_lead', male_score, 5, male_reason,
                            male_visual + male_persona),
            make_audit_item('pay.opening.female_lead', female_score, 5, female_reason,
                            female_conflict + female_motivation),
        ]

    # ------------------------------------------------------------------
    # 1.2 Paywalls (14 + 10)
    # ------------------------------------------------------------------

    def _classify_hook(self, context: str, secondary: bool = False) -> HookResult:
        """First matching hook type in precedence order wins."""
        for hook_type, category, primary_points, secondary_points in HOOK_TIERS:
            matched = self._matched(context, category)
            if matched:
                points = secondary_points if secondary else primary_points
                return HookResult(type=hook_type, score=points, evidence=matched)
        return HookResult(type=NO_HOOK, score=0)

    def _previous_quality(self, text: str) -> Tuple[int, Dict[str, int]]:
        counts = {
            'PlotDensity': self._count(text, 'paywall.plot_density'),
            'EmotionalPeak': self._count(text, 'paywall.emotional_peak'),
            'Foreshadowing': self._count(text, 'paywall.foreshadow'),
        }
        satisfied = sum(1 for count in counts.values() if count >= 2)
        return satisfied, counts

    def _next_pull_through(self, text: str) -> Tuple[int, Dict[str, bool]]:
        head = text[:NEXT_HEAD_CHARS]
        flags = {
            'ImmediateAnswer': self._count(head, 'paywall.next_answer') >= 1,
            'NewPlot': self._count(head, 'paywall.next_new_plot') >= 1,
            'NewHook': self._count(head, 'paywall.next_new_hook') >= 1,
        }
        return sum(1 for flag in flags.values() if flag), flags

    def _evaluate_primary_paywall(
        self,
        paywall_episode: Optional[int],
        episode_map: Dict[int, Episode],
        window_map: Dict[int, EpisodeWindow],
    ) -> List[AuditItem]:
        if paywall_episode is None:
            reason = 'Primary paywall not detected.'
            return [
                make_audit_item('pay.paywall.primary.position', 0, 2, reason),
                make_audit_item('pay.paywall.primary.previous', 0, 4, reason),
                make_audit_item('pay.paywall.primary.hook', 0, 5, reason),
                make_audit_item('pay.paywall.primary.next', 0, 3, reason),
            ]

        in_range = any(low <= paywall_episode <= high for low, high in PRIMARY_PAYWALL_RANGES)
        if in_range:
            position_reason = f'Episode {paywall_episode} falls within the valid primary-paywall range.'
        else:
            position_reason = f'Episode {paywall_episode} is outside the valid primary-paywall range.'

        previous = episode_map.get(paywall_episode - 1)
        previous_satisfied, previous_counts = self._previous_quality(previous.text if previous else '')
        previous_score = {3: 4, 2: 3, 1: 2}.get(previous_satisfied, 0)

        window = window_map.get(paywall_episode)
        hook = self._classify_hook((window.paywall_context or '') if window else '')

        following = episode_map.get(paywall_episode + 1)
        next_satisfied, next_flags = self._next_pull_through(following.text if following else '')

        return [
            make_audit_item('pay.paywall.primary.position', 2 if in_range else 0, 2,
                            position_reason, [f'Episode {paywall_episode}']),
            make_audit_item('pay.paywall.primary.previous', previous_score, 4,
                            f'Previous episode satisfies {previous_satisfied}/3 quality conditions.',
                            evidence_from_counts(previous_counts)),
            make_audit_item('pay.paywall.primary.hook', hook.score, 5,
                            f'Hook type: {hook.type}', hook.evidence),
            make_audit_item('pay.paywall.primary.next', next_satisfied, 3,
                            f'Next episode satisfies {next_satisfied}/3 pull-through conditions.',
                            boolean_evidence(next_flags)),
        ]

    def _evaluate_secondary_paywall(
        self,
        paywall_episode: Optional[int],
        total_for_scoring: int,
        observed: int,
        episode_map: Dict[int, Episode],
        window_map: Dict[int, EpisodeWindow],
    ) -> List[AuditItem]:
        ids = [
            ('pay.paywall.secondary.position', 2),
            ('pay.paywall.secondary.previous', 3),
            ('pay.paywall.secondary.hook', 3),
            ('pay.paywall.secondary.next', 2),
        ]

        if total_for_scoring < SECONDARY_PAYWALL_MIN_TOTAL:
            reason = 'TOTAL_EPISODES < 30, auto full score.'
            return [make_audit_item(item_id, max_score, max_score, reason) for item_id, max_score in ids]

        episode_range = secondary_paywall_range(total_for_scoring)
        if episode_range is None:
            reason = f'No secondary-paywall range is defined for TOTAL_EPISODES={total_for_scoring}.'
            evidence = [f'TOTAL_EPISODES={total_for_scoring}']
            return [make_audit_item(item_id, 0, max_score, reason, evidence) for item_id, max_score in ids]

        start, end = episode_range
        if observed < start:
            reason = (
                f'Secondary paywall is pending evaluation: observed episodes {observed} do not reach '
                f'range start {start} (declared/scoring total {total_for_scoring}).'
            )
            evidence = [
                f'observedEpisodes={observed}',
                f'rangeStart={start}',
                f'scoringTotal={total_for_scoring}',
            ]
            return [
                make_audit_item(item_id, 1, max_score, reason, evidence,
                                status=Warn(reason), confidence_flag=ConfidenceFlag.LOW_SAMPLE)
                for item_id, max_score in ids
            ]

        if paywall_episode is None:
            reason = 'TOTAL_EPISODES >= 30 but second paywall not detected.'
            return [make_audit_item(item_id, 0, max_score, reason) for item_id, max_score in ids]

        in_range = start <= paywall_episode <= end

        previous = episode_map.get(paywall_episode - 1)
        previous_satisfied, previous_counts = self._previous_quality(previous.text if previous else '')
        previous_score = min(previous_satisfied, 3)

        window = window_map.get(paywall_episode)
        context = (window.paywall_context or '') if window else ''
        hook = self._classify_hook(context, secondary=True)
        has_escalation = self._count(context, 'paywall.escalation') > 0
        hook_score = hook.score if has_escalation else min(hook.score, SECONDARY_NO_ESCALATION_CAP)
        if has_escalation:
            hook_reason = f'Hook type: {hook.type}, escalation signal detected.'
        else:
            hook_reason = f'Hook type: {hook.type}, no escalation signal, capped at 1 by rule.'

        following = episode_map.get(paywall_episode + 1)
        next_satisfied, next_flags = self._next_pull_through(following.text if following else '')

        if in_range:
            position_reason = f'Episode {paywall_episode} falls within secondary-paywall range {start}-{end}.'
        else:
            position_reason = f'Episode {paywall_episode} is outside secondary-paywall range {start}-{end}.'

        return [
            make_audit_item('pay.paywall.secondary.position', 2 if in_range else 0, 2,
                            position_reason, [f'Episode {paywall_episode}']),
            make_audit_item('pay.paywall.secondary.previous', previous_score, 3,
                            f'Previous episode of secondary paywall satisfies '
                            f'{previous_satisfied}/3 quality conditions.',
                            evidence_from_counts(previous_counts)),
            make_audit_item('pay.paywall.secondary.hook', hook_score, 3, hook_reason, hook.evidence),
            make_audit_item('pay.paywall.secondary.next', min(next_satisfied, 2), 2,
                            f'Next episode after secondary paywall satisfies '
                            f'{next_satisfied}/3 pull-through conditions.',
                            boolean_evidence(next_flags)),
        ]

    # ------------------------------------------------------------------
    # 1.3 Episodic hooks (7)
    # ------------------------------------------------------------------

    def _evaluate_episodic_hooks(self, episode_map: Dict[int, Episode]) -> AuditItem:
        available = [n for n in EPISODIC_HOOK_SAMPLES if n in episode_map]
        if not available:
            return make_audit_item('pay.hooks.episodic', 0, 7, 'No available sampled episodes.',
                                   status=Warn('No available sampled episodes.'),
                                   confidence_flag=ConfidenceFlag.LOW_SAMPLE)

        raw_sum = 0.0
        evidence = []
        for number in available:
            tail = episode_map[number].text[-EPISODIC_HOOK_TAIL_CHARS:]
            has_suspense = self._count(tail, 'episodic_hooks.suspense') > 0
            has_predictable = self._count(tail, 'episodic_hooks.predictable') > 0
            if has_suspense and has_predictable:
                single = 1.75
            elif has_suspense or has_predictable:
                single = 1.0
            else:
                single = 0.0
            raw_sum += single
            evidence.append(f'Ep{number}: {_fmt(single)}')

        final_score = min(raw_sum / len(available) * 4, 7)
        reason = (
            f'Sampled {len(available)} episodes. Raw sum {raw_sum:.2f}, '
            f'normalized {final_score:.2f}.'
        )
        return make_audit_item(
            'pay.hooks.episodic', final_score, 7, reason, evidence,
            status=Ok() if final_score >= 4 else Warn(reason),
            confidence_flag=ConfidenceFlag.LOW_SAMPLE if len(available) < 3 else ConfidenceFlag.NORMAL,
        )

    # ------------------------------------------------------------------
    # 1.4 Density + 1.5 Visual hammer
    # ------------------------------------------------------------------

    def _evaluate_density(self, total_episodes: int, episodes: List[Episode]) -> List[AuditItem]:
        def joined(limit: Optional[int]) -> str:
            return '\n'.join(e.text for e in episodes if limit is None or e.number <= limit)

        first12, first5, first3, full = joined(12), joined(5), joined(3), joined(None)

        drama_count = self._count(first12, 'density.drama_events')
        if drama_count >= 6:
            drama_score = 2.5
        elif drama_count >= 4:
            drama_score = 1.5
        elif drama_count >= 3:
            drama_score = 1
        else:
            drama_score = 0

        motivation_count = self._count(first5, 'density.motivation')
        antagonist_count = self._count(first5, 'density.antagonist_markers')
        protagonist_clear = motivation_count >= 2
        antagonist_clear = protagonist_clear and antagonist_count >= 1
        motivation_score = 2 if antagonist_clear else 1 if protagonist_clear else 0

        foreshadow_count = self._count(full, 'paywall.foreshadow')
        foreshadow_avg = foreshadow_count / max(1, total_episodes)
        foreshadow_score = 2.5 if foreshadow_avg >= 2 else 1.5 if foreshadow_avg >= 1 else 0

        visual_total = self._count(first12, 'density.visual_hammer')
        visual_first3 = self._count(first3, 'density.visual_hammer')
        visual_ratio = visual_first3 / visual_total if visual_total else 0.0
        if visual_total >= 5 and visual_ratio <= 0.5:
            visual_score = 2
        elif visual_total >= 3:
            visual_score = 1.5
        elif visual_total >= 1:
            visual_score = 1
        else:
            visual_score = 0

        return [
            make_audit_item('pay.density.drama', drama_score, 2.5,
                            f'Drama event count {drama_count}', [f'count={drama_count}']),
            make_audit_item(
                'pay.density.motivation', motivation_score, 2,
                f"Protagonist motivation is {'clear' if protagonist_clear else 'unclear'}; "
                f"antagonist motivation is {'clear' if antagonist_clear else 'unclear'}.",
                evidence_from_counts({'MotivationTerms': motivation_count,
                                      'AntagonistMarkers': antagonist_count}),
            ),
            make_audit_item('pay.density.foreshadow', foreshadow_score, 2.5,
                            f'Foreshadow density {foreshadow_avg:.2f} per episode.',
                            [f'total={foreshadow_count}', f'episodes={total_episodes}']),
            make_audit_item('pay.visual_hammer', visual_score, 2,
                            f'Visual hammer total {visual_total}, first-3 ratio {visual_ratio * 100:.1f}%.',
                            [f'first12={visual_total}', f'first3={visual_first3}']),
        ]

    # ------------------------------------------------------------------
    # 2.x Story (30)
    # ------------------------------------------------------------------

    def _role_tags(self, text: str, category: str) -> RoleTagResult:
        """Unique matched tags and the number of tag groups they cover."""
        unique: List[str] = []
        type_count = 0
        for terms in self.keywords.groups(category, self.language).values():
            matched = collect_matched_terms(text, terms, self.language)
            if matched:
                type_count += 1
            for term in matched:
                if term not in unique:
                    unique.append(term)
        return RoleTagResult(unique_tag_count=len(unique), type_count=type_count,
                             sample_tags=unique[:ROLE_TAG_SAMPLES])

    def _evaluate_story(self, total_episodes: int, full_script: str, total_words: int) -> List[AuditItem]:
        relationship_count = self._count(full_script, 'story.relationship')
        subplot_count = self._count(full_script, 'story.subplot')
        relationship_ratio = relationship_count / max(1, relationship_count + subplot_count)
        if relationship_ratio >= 0.8:
            core_score = 10
        elif relationship_ratio >= 0.6:
            core_score = 7
        elif relationship_ratio >= 0.4:
            core_score = 4
        else:
            core_score = 0

        male = self._role_tags(full_script, 'story.male_tag_groups')
        if male.unique_tag_count >= 4 and male.type_count >= 3:
            male_score = 4
        elif male.unique_tag_count >= 2:
            male_score = 2
        else:
            male_score = 0

        female = self._role_tags(full_script, 'story.female_tag_groups')
        if female.unique_tag_count >= 5 and female.type_count >= 4:
            female_score = 6
        elif female.unique_tag_count >= 3 and female.type_count >= 3:
            female_score = 4
        elif female.unique_tag_count >= 2:
            female_score = 2
        else:
            female_score = 0

        emotion_count = self._count(full_script, 'story.emotion')
        emotion_density = emotion_count / max(1, total_words) * 100
        if emotion_density >= 1.5:
            emotion_score = 6
        elif emotion_density >= 1.0:
            emotion_score = 4
        elif emotion_density >= 0.5:
            emotion_score = 2
        else:
            emotion_score = 0

        conflict_count = self._count(full_script, 'story.conflict')
        conflict_avg = conflict_count / max(1, total_episodes)
        conflict_score = 2.5 if conflict_avg >= 2 else 1.5 if conflict_avg >= 1 else 0.5

        twist_count = self._count(full_script, 'story.twist')
        twist_identity = self._count(full_script, 'story.twist_identity')
        major_twists = twist_count + math.floor(twist_identity * 0.5)
        if major_twists >= total_episodes / 4:
            twist_score = 1.5
        elif major_twists >= total_episodes / 6:
            twist_score = 1
        elif major_twists >= total_episodes / 8:
            twist_score = 0.5
        else:
            twist_score = 0

        return [
            make_audit_item('story.core_driver', core_score, 10,
                            f'Relationship-line ratio {relationship_ratio * 100:.1f}%.',
                            evidence_from_counts({'RelationshipTerms': relationship_count,
                                                  'SubplotTerms': subplot_count})),
            make_audit_item('story.character.male', male_score, 4,
                            f'Male-lead tags: {male.unique_tag_count}, type coverage: {male.type_count}.',
                            male.sample_tags),
            make_audit_item('story.character.female', female_score, 6,
                            f'Female-lead tags: {female.unique_tag_count}, type coverage: {female.type_count}.',
                            female.sample_tags),
            make_audit_item('story.emotion_density', emotion_score, 6,
                            f'Emotion density {emotion_density:.2f}%.',
                            evidence_from_counts({'EmotionHits': emotion_count, 'TotalWords': total_words})),
            make_audit_item('story.conflict', conflict_score, 2.5,
                            f'Conflict density {conflict_avg:.2f} per episode.',
                            [f'count={conflict_count}', f'episodes={total_episodes}']),
            make_audit_item('story.twist', twist_score, 1.5,
                            f'Twist strength {major_twists} (twist={twist_count}, identity={twist_identity}).',
                            [f'majorTwist={major_twists}']),
        ]

    # ------------------------------------------------------------------
    # 3.x Market (20)
    # ------------------------------------------------------------------

    def _mechanisms(self, text: str) -> List[Tuple[str, int]]:
        hits = []
        for family in self.keywords.node('market.mechanisms'):
            for name, terms in self.keywords.groups(f'market.mechanisms.{family}', self.language).items():
                count = count_terms(text, terms, self.language)
                if count >= MECHANISM_MIN_HITS:
                    hits.append((name, count))
        return hits

    def _genre_scores(self, text: str) -> Dict[str, int]:
        return {
            genre: count_terms(text, terms, self.language)
            for genre, terms in self.keywords.groups('market.genre_markers', self.language).items()
        }

    def detect_genre(self, text: str) -> str:
        """Plurality genre; ties go to the earlier genre, no hits to the default."""
        scores = self._genre_scores(text)
        best_genre, best_score = None, 0
        for genre, score in scores.items():
            if score > best_score:
                best_genre, best_score = genre, score
        return best_genre or str(self.keywords.node('market.default_genre'))

    def detect_audience_profile(self, text: str) -> AudienceProfile:
        scores = self._genre_scores(text)
        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        total = sum(scores.values())
        top = ranked[0][1] if ranked else 0
        second = ranked[1][1] if len(ranked) > 1 else 0
        return AudienceProfile(
            genre=self.detect_genre(text),
            core_share=top / total * 100 if total else 0.0,
            span_share=second / total * 100 if total else 0.0,
            breakdown=[f'{genre}:{score}' for genre, score in ranked],
        )

    def detect_redline(self, text: str) -> RedlineResult:
        evidence = self._matched(text, 'market.redline')
        return RedlineResult(hit=bool(evidence), evidence=evidence)

    def _evaluate_market(self, total_episodes: int, full_script: str) -> Tuple[List[AuditItem], RedlineResult]:
        mechanisms = self._mechanisms(full_script)
        mechanism_score = {0: 0, 1: 1, 2: 3}.get(len(mechanisms), 5)

        vulgar_count = self._count(full_script, 'market.vulgar')
        redline = self.detect_redline(full_script)
        vulgar_penalty = min(2, vulgar_count * 0.05)
        taboo_score = 0 if redline.hit else max(0, 5 - vulgar_penalty)
        if redline.hit:
            taboo_reason = 'Redline term detected; cultural taboo score forced to 0.'
            taboo_item = make_audit_item('market.taboo', taboo_score, 5, taboo_reason,
                                         redline.evidence, status=Fail(taboo_reason))
        else:
            taboo_item = make_audit_item(
                'market.taboo', taboo_score, 5,
                f'Vulgar terms detected: {vulgar_count}, penalty {vulgar_penalty:.2f}.',
                [f'vulgar={vulgar_count}'],
            )

        localization_count = self._count(full_script, 'market.localization')
        localization_avg = localization_count / max(1, total_episodes)
        if localization_avg >= 0.2:
            localization_score = 5
        elif localization_avg >= 0.1:
            localization_score = 3
        elif localization_avg >= 0.04:
            localization_score = 1
        else:
            localization_score = 0

        genre = self.detect_genre(full_script)
        mismatch_terms = self.keywords.terms(f'market.audience_mismatch.{genre}', self.language)
        mismatch_count = count_terms(full_script, mismatch_terms, self.language)
        if mismatch_count == 0:
            genre_score = 3
        elif mismatch_count <= 2:
            genre_score = 2
        elif mismatch_count <= 4:
            genre_score = 1
        else:
            genre_score = 0

        profile = self.detect_audience_profile(full_script)
        if profile.core_share >= 75 and profile.span_share >= 10:
            purity_score = 2
        elif profile.core_share >= 75:
            purity_score = 1.5
        elif profile.core_share >= 60:
            purity_score = 1
        else:
            purity_score = 0

        items = [
            make_audit_item('market.benchmark', mechanism_score, 5,
                            f'Detected mechanisms: {len(mechanisms)}.',
                            [f'{name}:{hits}' for name, hits in mechanisms]),
            taboo_item,
            make_audit_item('market.localization', localization_score, 5,
                            f'Localization density {localization_avg:.3f} per episode.',
                            [f'count={localization_count}', f'episodes={total_episodes}']),
            make_audit_item('market.audience.genre', genre_score, 3,
                            f'Detected genre {genre}; audience mismatch elements {mismatch_count}.',
                            [f'genre={genre}', f'mismatch={mismatch_count}']),
            make_audit_item('market.audience.purity', purity_score, 2,
                            f'Core audience share {profile.core_share:.1f}%, span {profile.span_share:.1f}%.',
                            profile.breakdown),
        ]
        return items, redline

    # ------------------------------------------------------------------
    # 4.x Improvement potential (10)
    # ------------------------------------------------------------------

    def _evaluate_potential(self, prior_items: List[AuditItem]) -> List[AuditItem]:
        issues = [item for item in prior_items if not item.is_ok]
        recoverable = sum(item.max - item.score for item in issues)

        issue_type = infer_primary_issue_type([item.id for item in issues])
        repair_score = REPAIR_COST_SCORES[issue_type]

        if recoverable >= 15:
            gain_score = 3
        elif recoverable >= 8:
            gain_score = 2
        elif recoverable >= 5:
            gain_score = 1
        else:
            gain_score = 0

        story_score = sum_by_prefix(prior_items, 'story.')
        core_driver = score_of(prior_items, 'story.core_driver')
        character = (score_of(prior_items, 'story.character.male')
                     + score_of(prior_items, 'story.character.female'))
        story_percent = story_score / 30 * 100
        if story_percent >= 90 and core_driver >= 8 and character >= 8:
            story_core_score = 3
        elif story_percent >= 80 and core_driver >= 7 and character >= 7:
            story_core_score = 2
        elif story_percent >= 70 and core_driver >= 6 and character >= 6:
            story_core_score = 1
        else:
            story_core_score = 0

        return [
            make_audit_item('potential.repair_cost', repair_score, 3,
                            REPAIR_COST_REASONS[issue_type], [f'issues={len(issues)}']),
            make_audit_item('potential.expected_gain', gain_score, 3,
                            f'Estimated recoverable points {recoverable:.2f}.',
                            [f'recoverable={recoverable:.2f}']),
            make_audit_item('potential.story_core', story_core_score, 3,
                            f'Story ratio {story_percent:.1f}%, core driver {_fmt(core_driver)}, '
                            f'character recognizability {_fmt(character)}.',
                            [f'story={story_score:.2f}/30']),
            make_audit_item('potential.scarcity', 0.5, 1, 'N/A: no dataset',
                            ['benchmarkMode=rule-only']),
        ]


def score_document(
    episodes: List[Episode],
    windows: List[EpisodeWindow],
    language: Language,
    tokenizer: Tokenizer,
    total_words: int = 0,
    ingest: Optional[IngestMetadata] = None,
    keywords: Optional[KeywordTable] = None,
) -> AnalysisScoreResult:
    """Convenience wrapper: score a parsed document with the rule scorer."""
    scorer = RuleScorer(language, tokenizer, keywords)
    return scorer.score(episodes, windows, total_words=total_words, ingest=ingest)
