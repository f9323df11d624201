"""Pydantic schemas for model output, the presentation payload and the scoring request."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Health = Literal['GOOD', 'FAIR', 'PEAK']
EpisodeState = Literal['optimal', 'issue', 'neutral']
IssueCategory = Literal['structure', 'pacing', 'mixed']
EmotionLevel = Literal['Low', 'Medium', 'High']
ConflictDensity = Literal['LOW', 'MEDIUM', 'HIGH']
AnchorSlot = Literal['Start', 'Mid', 'End']
PhaseName = Literal['Start', 'Inc.', 'Rise', 'Climax', 'Fall', 'Res.']

ANCHOR_SLOTS = ('Start', 'Mid', 'End')
PHASE_NAMES = ('Start', 'Inc.', 'Rise', 'Climax', 'Fall', 'Res.')


class _Strict(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')


# ============================================================================
# Episode pass (model output)
# ============================================================================

class EpisodePassItem(_Strict):
    episode: int = Field(ge=1)
    health: Health
    primaryHookType: str = Field(min_length=1, max_length=48)
    aiHighlight: str = Field(min_length=8, max_length=220)
    state: EpisodeState
    issueCategory: IssueCategory
    issueLabel: str = Field(min_length=1, max_length=72)
    issueReason: str = Field(min_length=4, max_length=240)
    suggestion: str = Field(min_length=4, max_length=240)
    emotionLevel: EmotionLevel
    conflictDensity: ConflictDensity
    pacingScore: float = Field(ge=0, le=10)
    signalPercent: float = Field(ge=0, le=100)


class EpisodePass(_Strict):
    episodes: List[EpisodePassItem] = Field(min_length=1)


# ============================================================================
# Global pass (model output)
# ============================================================================

class DimensionNarratives(_Strict):
    monetization: str = Field(min_length=12, max_length=220)
    story: str = Field(min_length=12, max_length=220)
    market: str = Field(min_length=12, max_length=220)


class ChartCaptions(_Strict):
    emotion: str = Field(min_length=12, max_length=200)
    conflict: str = Field(min_length=12, max_length=200)


class DiagnosisOverviewDraft(_Strict):
    integritySummary: str = Field(min_length=16, max_length=260)
    pacingFocusEpisode: int = Field(ge=1)
    pacingIssueLabel: str = Field(min_length=3, max_length=72)
    pacingIssueReason: str = Field(min_length=8, max_length=220)


class GlobalSummary(_Strict):
    commercialSummary: str = Field(min_length=20, max_length=280)
    dimensionNarratives: DimensionNarratives
    chartCaptions: ChartCaptions
    diagnosisOverview: DiagnosisOverviewDraft


# ============================================================================
# Presentation payload (response)
# ============================================================================

class SeriesPoint(_Strict):
    episode: int = Field(ge=1)
    value: float = Field(ge=0, le=100)


class Anchor(_Strict):
    slot: AnchorSlot
    episode: int = Field(ge=1)
    value: float = Field(ge=0, le=100)


class EmotionChart(_Strict):
    series: List[SeriesPoint] = Field(min_length=1)
    anchors: List[Anchor] = Field(min_length=3, max_length=3)
    caption: str = Field(min_length=1)


class ConflictPhase(_Strict):
    phase: PhaseName
    ext: float = Field(ge=0, le=100)
    int: float = Field(ge=0, le=100)


class ConflictChart(_Strict):
    phases: List[ConflictPhase] = Field(min_length=6, max_length=6)
    caption: str = Field(min_length=1)


class Charts(_Strict):
    emotion: EmotionChart
    conflict: ConflictChart


class EpisodeRow(_Strict):
    episode: int = Field(ge=1)
    health: Health
    primaryHookType: str = Field(min_length=1, max_length=48)
    aiHighlight: str = Field(min_length=1, max_length=240)


class MatrixCell(_Strict):
    episode: int = Field(ge=1)
    state: EpisodeState


class DiagnosisDetail(_Strict):
    episode: int = Field(ge=1)
    issueCategory: IssueCategory
    issueLabel: str = Field(min_length=1, max_length=72)
    issueReason: str = Field(min_length=1, max_length=240)
    suggestion: str = Field(min_length=1, max_length=240)
    hookType: str = Field(min_length=1, max_length=48)
    emotionLevel: EmotionLevel
    conflictDensity: ConflictDensity
    pacingScore: float = Field(ge=0, le=10)
    signalPercent: float = Field(ge=0, le=100)


class DiagnosisOverview(_Strict):
    integritySummary: str = Field(min_length=1)
    pacingFocusEpisode: int = Field(ge=1)
    pacingIssueLabel: str = Field(min_length=1, max_length=72)
    pacingIssueReason: str = Field(min_length=1, max_length=220)


class Diagnosis(_Strict):
    matrix: List[MatrixCell] = Field(min_length=1)
    details: List[DiagnosisDetail]
    overview: DiagnosisOverview


class PresentationNarratives(_Strict):
    monetization: str = Field(min_length=1)
    story: str = Field(min_length=1)
    market: str = Field(min_length=1)


class Presentation(_Strict):
    commercialSummary: str = Field(min_length=1)
    dimensionNarratives: PresentationNarratives
    charts: Charts
    episodeRows: List[EpisodeRow] = Field(min_length=1)
    diagnosis: Diagnosis


# ============================================================================
# Scoring request
# ============================================================================

class RequestEpisode(BaseModel):
    number: int = Field(ge=1)
    text: str
    paywallCount: int = Field(ge=0)


class RequestIngest(BaseModel):
    declaredTotalEpisodes: Optional[int] = Field(default=None, ge=1)
    inferredTotalEpisodes: int = Field(ge=0)
    totalEpisodesForScoring: int = Field(ge=1)
    observedEpisodeCount: int = Field(ge=1)
    completionState: Literal['completed', 'incomplete', 'unknown']
    coverageRatio: float = Field(ge=0, le=1)
    mode: Literal['official', 'provisional']


class ScoreRequest(BaseModel):
    episodes: List[RequestEpisode] = Field(min_length=1)
    ingest: Optional[RequestIngest] = None
    language: Literal['en', 'zh']
    tokenizer: Literal['whitespace', 'intl-segmenter', 'char-fallback']
    totalWordsFromL1: float = Field(ge=1)

    @field_validator('episodes')
    @classmethod
    def _unique_numbers(cls, value: List[RequestEpisode]) -> List[RequestEpisode]:
        numbers = [e.number for e in value]
        if len(numbers) != len(set(numbers)):
            raise ValueError('episode numbers must be unique')
        return value
