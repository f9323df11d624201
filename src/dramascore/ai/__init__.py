"""AI scoring modules for DramaScore."""

from .client import AIClient
from .orchestrator import AIScoringOrchestrator, evaluate_ai_score

__all__ = ["AIClient", "AIScoringOrchestrator", "evaluate_ai_score"]
