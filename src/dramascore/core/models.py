"""Canonical data models for DramaScore."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..config import Language, Tokenizer


# ============================================================================
# Errors
# ============================================================================

class DramaScoreError(Exception):
    """Base error. `code` is the stable identifier surfaced to callers."""

    code = "ERR_INTERNAL"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class PreflightBlockedError(DramaScoreError):
    """Scoring was requested for a document with fatal preflight issues."""

    code = "ERR_PREFLIGHT"

    def __init__(self, issues: List["PreflightIssue"]):
        summary = "; ".join(f"{i.code.value}: {i.message}" for i in issues)
        super().__init__(f"Document failed preflight: {summary}")
        self.issues = issues


class RequestValidationError(DramaScoreError):
    code = "ERR_BAD_REQUEST"


class ConfigurationError(DramaScoreError):
    code = "ERR_SERVER_CONFIG"


class AIEvaluationError(DramaScoreError):
    code = "ERR_AI_EVAL"


class PresentationContractError(DramaScoreError):
    code = "ERR_PRESENTATION"


# ============================================================================
# Parsing / preflight
# ============================================================================

@dataclass(frozen=True)
class Episode:
    """One numbered narrative unit of the script."""
    number: int
    text: str
    paywall_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "text": self.text,
            "paywallCount": self.paywall_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Episode":
        return cls(
            number=int(data["number"]),
            text=data.get("text", ""),
            paywall_count=int(data.get("paywallCount", data.get("paywall_count", 0))),
        )


class Severity(Enum):
    FATAL = "fatal"
    WARN = "warn"


class IssueCode(Enum):
    TOO_SHORT = "ERR_TOO_SHORT"
    NO_EPISODE_HEADERS = "ERR_NO_EPISODE_HEADERS"
    INVALID_TOTAL_EPISODES = "ERR_INVALID_TOTAL_EPISODES"
    MIXED_LANGUAGE = "ERR_MIXED_LANGUAGE"
    MISSING_EPISODE = "ERR_MISSING_EPISODE"
    # Reserved: repair keeps one block per episode number.
    DUPLICATE_EPISODE = "ERR_DUPLICATE_EPISODE"
    OUT_OF_ORDER_EPISODE = "ERR_OUT_OF_ORDER_EPISODE"
    TOO_MANY_PAYWALLS = "ERR_TOO_MANY_PAYWALLS"
    MULTI_PAYWALL_IN_EPISODE = "ERR_MULTI_PAYWALL_IN_EPISODE"
    PAYWALL_OUT_OF_RANGE = "ERR_PAYWALL_OUT_OF_RANGE"


@dataclass(frozen=True)
class PreflightIssue:
    code: IssueCode
    message: str
    severity: Severity

    def to_dict(self) -> Dict[str, str]:
        return {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
        }


class CompletionState(Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    UNKNOWN = "unknown"


class IngestMode(Enum):
    OFFICIAL = "official"
    PROVISIONAL = "provisional"


@dataclass
class IngestMetadata:
    """Declared vs. observed vs. scoring-total episode counts."""
    inferred_total: int
    total_for_scoring: int
    observed_count: int
    completion_state: CompletionState = CompletionState.UNKNOWN
    coverage_ratio: float = 0.0
    mode: IngestMode = IngestMode.PROVISIONAL
    declared_total: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "inferredTotalEpisodes": self.inferred_total,
            "totalEpisodesForScoring": self.total_for_scoring,
            "observedEpisodeCount": self.observed_count,
            "completionState": self.completion_state.value,
            "coverageRatio": self.coverage_ratio,
            "mode": self.mode.value,
        }
        if self.declared_total is not None:
            d["declaredTotalEpisodes"] = self.declared_total
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestMetadata":
        return cls(
            declared_total=data.get("declaredTotalEpisodes"),
            inferred_total=data["inferredTotalEpisodes"],
            total_for_scoring=data["totalEpisodesForScoring"],
            observed_count=data["observedEpisodeCount"],
            completion_state=CompletionState(data["completionState"]),
            coverage_ratio=data["coverageRatio"],
            mode=IngestMode(data["mode"]),
        )


@dataclass
class DocumentMeta:
    """Document-level header fields and detected language."""
    language: Language
    tokenizer: Tokenizer
    title: Optional[str] = None
    total_episodes: Optional[int] = None
    is_completed: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "totalEpisodes": self.total_episodes,
            "isCompleted": self.is_completed,
            "language": self.language.value,
            "tokenizer": self.tokenizer.value,
        }


@dataclass
class ParseResult:
    meta: DocumentMeta
    ingest: IngestMetadata
    episodes: List[Episode]
    errors: List[PreflightIssue] = field(default_factory=list)
    warnings: List[PreflightIssue] = field(default_factory=list)

    @property
    def is_scorable(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "ingest": self.ingest.to_dict(),
            "episodes": [e.to_dict() for e in self.episodes],
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
        }


# ============================================================================
# Metrics / windows
# ============================================================================

@dataclass
class EpisodeMetrics:
    """L1 token and keyword-hit counts for one episode (or a total)."""
    episode: int = 0
    token_count: int = 0
    word_count: int = 0
    emotion_hits: int = 0
    conflict_ext_hits: int = 0
    conflict_int_hits: int = 0
    vulgar_hits: int = 0
    taboo_hits: int = 0

    @property
    def conflict_hits(self) -> int:
        return self.conflict_ext_hits + self.conflict_int_hits

    def to_dict(self) -> Dict[str, int]:
        return {
            "episode": self.episode,
            "tokenCount": self.token_count,
            "wordCount": self.word_count,
            "emotionHits": self.emotion_hits,
            "conflictHits": self.conflict_hits,
            "conflictExtHits": self.conflict_ext_hits,
            "conflictIntHits": self.conflict_int_hits,
            "vulgarHits": self.vulgar_hits,
            "tabooHits": self.taboo_hits,
        }


@dataclass
class MetricsResult:
    episodes: List[EpisodeMetrics]
    totals: EpisodeMetrics


@dataclass
class EpisodeWindow:
    """Bounded text slices of one episode used as scoring/prompt context."""
    episode: int
    tokens_total: int
    head: str
    tail: str
    next_head: str
    hook_context: str
    paywall_context: Optional[str] = None
    paywall_pre: Optional[str] = None
    paywall_post: Optional[str] = None

    @property
    def has_paywall(self) -> bool:
        return self.paywall_context is not None


# ============================================================================
# Audit items
# ============================================================================

@dataclass(frozen=True)
class Ok:
    value = "ok"


@dataclass(frozen=True)
class Warn:
    reason: str = ""
    value = "warn"


@dataclass(frozen=True)
class Fail:
    reason: str = ""
    value = "fail"


AuditStatus = Union[Ok, Warn, Fail]


class ConfidenceFlag(Enum):
    LOW_SAMPLE = "low_sample"
    NORMAL = "normal"


@dataclass
class AuditItem:
    """One scored sub-rule."""
    id: str
    status: AuditStatus
    score: float
    max: float
    reason: str
    evidence: List[str] = field(default_factory=list)
    confidence_flag: Optional[ConfidenceFlag] = None

    @property
    def is_ok(self) -> bool:
        return isinstance(self.status, Ok)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "score": self.score,
            "max": self.max,
            "reason": self.reason,
            "evidence": list(self.evidence),
        }
        if self.confidence_flag is not None:
            d["confidenceFlag"] = self.confidence_flag.value
        return d


# ============================================================================
# Scores
# ============================================================================

class Grade(Enum):
    S_PLUS = "S+"
    S = "S"
    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"


@dataclass(frozen=True)
class ScoreBreakdown:
    pay: float
    story: float
    market: float
    potential: float
    total110: float
    overall100: int
    grade: Grade

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_110": self.total110,
            "overall_100": self.overall100,
            "grade": self.grade.value,
            "breakdown_110": {
                "pay": self.pay,
                "story": self.story,
                "market": self.market,
                "potential": self.potential,
            },
        }
