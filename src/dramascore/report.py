"""Markdown report rendering."""

from typing import Any, Dict, Optional

from jinja2 import BaseLoader, Environment

from .core.models import ParseResult
from .scoring.aggregate import DIMENSION_MAX, AnalysisScoreResult

REPORT_TEMPLATE = """# Script Evaluation: {{ meta.title or 'Untitled' }}

| Field | Value |
|---|---|
| Language | {{ meta.language }} ({{ meta.tokenizer }}) |
| Episodes observed | {{ ingest.observedEpisodeCount }} |
| Episodes for scoring | {{ ingest.totalEpisodesForScoring }} |
| Coverage | {{ '%.0f' | format(ingest.coverageRatio * 100) }}% |
| Completion | {{ ingest.completionState }} |
| Ingest mode | {{ ingest.mode }} |

## Preflight
{% if not errors and not warnings %}
No preflight issues.
{% else %}
{% for issue in errors %}
- **FATAL** `{{ issue.code }}`: {{ issue.message }}
{% endfor %}
{% for issue in warnings %}
- warn `{{ issue.code }}`: {{ issue.message }}
{% endfor %}
{% endif %}
{% if score %}

## Score

**{{ score.grade }}** | {{ score.overall_100 }}/100 | {{ '%.2f' | format(score.total_110) }}/110

| Dimension | Score | Max |
|---|---|---|
{% for name, value in score.breakdown_110.items() %}
| {{ name }} | {{ '%.2f' | format(value) }} | {{ dimension_max[name] }} |
{% endfor %}
{% if result_meta.redlineHit %}

> Redline content detected: {{ result_meta.redlineEvidence | join(', ') }}. Grade capped at {{ score.grade }}.
{% endif %}
{% endif %}
{% if audit_items %}

## Audit

| Item | Status | Score | Reason |
|---|---|---|---|
{% for item in audit_items %}
| `{{ item.id }}` | {{ item.status }}{% if item.confidenceFlag %} ({{ item.confidenceFlag }}){% endif %} | {{ item.score }}/{{ item.max }} | {{ item.reason }} |
{% endfor %}
{% endif %}
{% if presentation %}

## Summary

{{ presentation.commercialSummary }}

- **Monetization:** {{ presentation.dimensionNarratives.monetization }}
- **Story:** {{ presentation.dimensionNarratives.story }}
- **Market:** {{ presentation.dimensionNarratives.market }}

### Episodes

| EP | Health | Hook | Highlight |
|---|---|---|---|
{% for row in presentation.episodeRows %}
| {{ row.episode }} | {{ row.health }} | {{ row.primaryHookType }} | {{ row.aiHighlight }} |
{% endfor %}
{% if presentation.diagnosis.details %}

### Diagnosis

{{ presentation.diagnosis.overview.integritySummary }}

{% for detail in presentation.diagnosis.details %}
- **EP {{ detail.episode }}** ({{ detail.issueCategory }}) {{ detail.issueLabel }}: {{ detail.issueReason }} Fix: {{ detail.suggestion }}
{% endfor %}
{% endif %}
{% endif %}
"""

_env = Environment(loader=BaseLoader(), trim_blocks=True, lstrip_blocks=True)


def render_report(parsed: ParseResult, result: Optional[AnalysisScoreResult] = None) -> str:
    """Render a markdown report for a parsed document and optional score."""
    doc = parsed.to_dict()
    scored: Dict[str, Any] = result.to_dict() if result is not None else {}
    template = _env.from_string(REPORT_TEMPLATE)
    return template.render(
        meta=doc['meta'],
        ingest=doc['ingest'],
        errors=doc['errors'],
        warnings=doc['warnings'],
        score=scored.get('score'),
        result_meta=scored.get('meta', {}),
        audit_items=scored.get('audit', {}).get('items', []),
        presentation=scored.get('presentation'),
        dimension_max=DIMENSION_MAX,
    )
