"""Configuration for DramaScore."""

import os
from enum import Enum
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


class Language(Enum):
    """Analysis language of a document."""
    EN = "en"
    ZH = "zh"


class LanguageMode(Enum):
    """Detected script mix of a document."""
    EN = "en"
    ZH = "zh"
    MIXED = "mixed"


class Tokenizer(Enum):
    """Tokenization strategies."""
    WHITESPACE = "whitespace"
    SEGMENTER = "intl-segmenter"
    CHAR_FALLBACK = "char-fallback"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


class Config:
    """Global configuration."""

    # API
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
    MODEL = os.getenv("MODEL", "claude-sonnet-4-20250514")
    MAX_TOKENS = _env_int("MAX_TOKENS", 8192)

    # AI scoring
    AI_TEMPERATURE = _env_float("AI_TEMPERATURE", 0.2)
    AI_MAX_ATTEMPTS = _env_int("AI_MAX_ATTEMPTS", 3)
    AI_TIMEOUT_SECONDS = _env_float("AI_TIMEOUT_SECONDS", 90.0)
    AI_EPISODE_CHUNK_SIZE = _env_int("AI_EPISODE_CHUNK_SIZE", 40)
    AI_RETRY_BACKOFF_SECONDS = _env_float("AI_RETRY_BACKOFF_SECONDS", 0.5)
    AI_RETRY_BACKOFF_MAX_SECONDS = _env_float("AI_RETRY_BACKOFF_MAX_SECONDS", 10.0)
    MAX_BRIEF_EPISODES = _env_int("MAX_BRIEF_EPISODES", 120)

    # Keyword tables
    KEYWORDS_PATH = os.getenv(
        "KEYWORDS_PATH",
        str(Path(__file__).parent / "scoring" / "data" / "keywords.yaml"),
    )

    # Language detection: minority script must reach this many characters
    # before a document counts as mixed.
    MIXED_LANGUAGE_MIN_CHARS = _env_int("MIXED_LANGUAGE_MIN_CHARS", 1)

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Web
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = _env_int("PORT", 5000)

    @classmethod
    def has_api_key(cls) -> bool:
        """True when a non-blank model API key is configured."""
        key = cls.ANTHROPIC_API_KEY
        return key is not None and len(key.strip()) > 0
