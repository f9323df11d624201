from .models import (
    DramaScoreError, PreflightBlockedError, RequestValidationError,
    ConfigurationError, AIEvaluationError, PresentationContractError,
    Episode, PreflightIssue, IngestMetadata, DocumentMeta, ParseResult,
    AuditItem, ScoreBreakdown, Grade,
)
from .importer import import_script, FileImportError
from .parser import parse_episodes
from .preflight import parse_and_preflight, ensure_scorable
from .windows import build_windows

__all__ = [
    "DramaScoreError", "PreflightBlockedError", "RequestValidationError",
    "ConfigurationError", "AIEvaluationError", "PresentationContractError",
    "Episode", "PreflightIssue", "IngestMetadata", "DocumentMeta", "ParseResult",
    "AuditItem", "ScoreBreakdown", "Grade",
    "import_script", "FileImportError",
    "parse_episodes",
    "parse_and_preflight", "ensure_scorable",
    "build_windows",
]
