"""Prompt templates for the two-pass AI scoring run."""

import json
from typing import Any, Dict, List

from .briefs import EpisodeBrief

ENGLISH_OUTPUT_POLICY = """Hard output rules:
1) Return all reasoning and evidence in English.
2) Do not output Chinese characters.
3) If the source is Chinese, paraphrase evidence in English.
4) Follow the schema exactly and do not add extra fields.
5) Return ONLY a valid JSON object, no other text."""

EPISODE_PASS_SYSTEM = f"""You are a short-drama script evaluator for vertical serialized dramas.
You read per-episode briefs and judge each episode's commercial health, hook,
pacing and problems. Be concrete and specific to the brief you are given.

{ENGLISH_OUTPUT_POLICY}"""

EPISODE_PASS_USER = """Evaluate every episode below. The series has {total_episodes} episodes in total.
{paywall_note}

Return a JSON object with this shape:
{{
  "episodes": [
    {{
      "episode": <int, the episode number>,
      "health": "GOOD" | "FAIR" | "PEAK",
      "primaryHookType": <short label of the ending hook, e.g. "Decision", "Crisis", "Information", "Emotion", or "None">,
      "aiHighlight": <8-220 chars, the strongest moment of the episode>,
      "state": "optimal" | "issue" | "neutral",
      "issueCategory": "structure" | "pacing" | "mixed",
      "issueLabel": <1-72 chars, short name of the main problem or "None">,
      "issueReason": <4-240 chars, why it is a problem>,
      "suggestion": <4-240 chars, one concrete fix>,
      "emotionLevel": "Low" | "Medium" | "High",
      "conflictDensity": "LOW" | "MEDIUM" | "HIGH",
      "pacingScore": <number 0-10>,
      "signalPercent": <number 0-100, commercial signal strength>
    }}
  ]
}}

Rules:
- Return exactly one item per episode listed below, no more and no less.
- "PEAK" is reserved for episodes with a major payoff or reversal.
- Use state "issue" only when the episode has a real structural or pacing problem.

Episode briefs:
{briefs}"""

GLOBAL_PASS_SYSTEM = f"""You are a short-drama commercial analyst writing the summary
section of a script evaluation report. The numeric scores are already final;
explain them, do not change them.

{ENGLISH_OUTPUT_POLICY}"""

GLOBAL_PASS_USER = """Write the report summary for a {total_episodes}-episode script.

Final numeric scores (do not restate different numbers):
{score_parts}

Per-episode evaluation:
{episode_pass}

Return a JSON object with this shape:
{{
  "commercialSummary": <20-280 chars>,
  "dimensionNarratives": {{
    "monetization": <12-220 chars>,
    "story": <12-220 chars>,
    "market": <12-220 chars>
  }},
  "chartCaptions": {{
    "emotion": <12-200 chars, describes the emotion trend across episodes>,
    "conflict": <12-200 chars, describes the external vs internal conflict arc>
  }},
  "diagnosisOverview": {{
    "integritySummary": <16-260 chars>,
    "pacingFocusEpisode": <int between 1 and {total_episodes}>,
    "pacingIssueLabel": <3-72 chars>,
    "pacingIssueReason": <8-220 chars>
  }}
}}"""


def clip(text: str, limit: int) -> str:
    value = text.strip()
    if len(value) <= limit:
        return value
    return f"{value[:limit]}\n...[truncated]"


def infer_paywall_episode(total_episodes: int) -> int:
    """Suggested primary paywall episode for a series of the given length."""
    if total_episodes <= 15:
        return max(1, min(7, total_episodes - 1))
    if total_episodes <= 30:
        return 10
    if total_episodes <= 50:
        return 12
    return 15


def _format_brief(brief: EpisodeBrief) -> str:
    events = '\n'.join(f"  - {clip(event, 200)}" for event in brief.key_events)
    paywall = ' [PAYWALL]' if brief.paywall_flag else ''
    return (
        f"### Episode {brief.episode}{paywall}\n"
        f"Opening: {clip(brief.opening, 600)}\n"
        f"Key events:\n{events}\n"
        f"Ending: {clip(brief.ending, 600)}\n"
        f"Signals: emotion={brief.emotion_raw}, conflictExt={brief.conflict_ext_raw}, "
        f"conflictInt={brief.conflict_int_raw}, words={brief.word_count}"
    )


def build_episode_pass_prompt(briefs: List[EpisodeBrief], total_episodes: int) -> str:
    marked = [b.episode for b in briefs if b.paywall_flag]
    if marked:
        paywall_note = f"Paywall markers appear in episode(s): {', '.join(str(n) for n in marked)}."
    else:
        paywall_note = (
            f"No paywall marker is present; assume the primary paywall sits near "
            f"episode {infer_paywall_episode(total_episodes)}."
        )
    return EPISODE_PASS_USER.format(
        total_episodes=total_episodes,
        paywall_note=paywall_note,
        briefs='\n\n'.join(_format_brief(b) for b in briefs),
    )


def build_global_pass_prompt(
    episode_pass: List[Dict[str, Any]],
    score_parts: Dict[str, Any],
    total_episodes: int,
) -> str:
    rows = [
        {
            'episode': item['episode'],
            'health': item['health'],
            'primaryHookType': item['primaryHookType'],
            'state': item['state'],
            'issueLabel': item['issueLabel'],
            'pacingScore': item['pacingScore'],
            'signalPercent': item['signalPercent'],
        }
        for item in episode_pass
    ]
    return GLOBAL_PASS_USER.format(
        total_episodes=total_episodes,
        score_parts=json.dumps(score_parts, indent=2),
        episode_pass=clip(json.dumps(rows, indent=1, ensure_ascii=False), 24000),
    )
