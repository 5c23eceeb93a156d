"""
MirrorPool Config -- environment-driven settings.

All knobs are environment variables resolved lazily so tests can override
them per test:

    MIRRORPOOL_HOME                       data directory (default ~/.mirrorpool)
    MIRRORPOOL_SIMILARITY_THRESHOLD       echo threshold on full-text similarity (0.3)
    MIRRORPOOL_KEYWORD_OVERLAP_THRESHOLD  echo threshold on keyword overlap (0.4)
    MIRRORPOOL_CANDIDATE_WINDOW           prior thoughts compared per ingestion (10)
    MIRRORPOOL_LOG_LEVEL                  logging level for server and CLI (WARNING)
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict

from mirrorpool.errors import ValidationError

logger = logging.getLogger("mirrorpool.config")

DEFAULT_SIMILARITY_THRESHOLD = 0.3
DEFAULT_KEYWORD_OVERLAP_THRESHOLD = 0.4
DEFAULT_CANDIDATE_WINDOW = 10
MAX_CANDIDATE_WINDOW = 1000


def mirrorpool_home() -> Path:
    """Resolve MIRRORPOOL_HOME lazily so tests can override via env var."""
    return Path(os.environ.get("MIRRORPOOL_HOME", str(Path.home() / ".mirrorpool")))


def log_level() -> int:
    name = os.environ.get("MIRRORPOOL_LOG_LEVEL", "WARNING").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def _env_float(name: str, default: float, lo: float, hi: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(lo, min(float(raw), hi))
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(lo, min(int(raw), hi))
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


class EngineConfig:
    """Edge-discovery settings for the reflection engine."""

    __slots__ = ("similarity_threshold", "keyword_overlap_threshold", "candidate_window")

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        keyword_overlap_threshold: float = DEFAULT_KEYWORD_OVERLAP_THRESHOLD,
        candidate_window: int = DEFAULT_CANDIDATE_WINDOW,
    ):
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValidationError(f"similarity_threshold must be in [0, 1], got {similarity_threshold}")
        if not 0.0 <= keyword_overlap_threshold <= 1.0:
            raise ValidationError(f"keyword_overlap_threshold must be in [0, 1], got {keyword_overlap_threshold}")
        if not isinstance(candidate_window, int) or candidate_window < 0:
            raise ValidationError(f"candidate_window must be a non-negative integer, got {candidate_window!r}")
        self.similarity_threshold = float(similarity_threshold)
        self.keyword_overlap_threshold = float(keyword_overlap_threshold)
        self.candidate_window = candidate_window

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables, clamping out-of-range values."""
        return cls(
            similarity_threshold=_env_float(
                "MIRRORPOOL_SIMILARITY_THRESHOLD", DEFAULT_SIMILARITY_THRESHOLD, 0.0, 1.0
            ),
            keyword_overlap_threshold=_env_float(
                "MIRRORPOOL_KEYWORD_OVERLAP_THRESHOLD", DEFAULT_KEYWORD_OVERLAP_THRESHOLD, 0.0, 1.0
            ),
            candidate_window=_env_int(
                "MIRRORPOOL_CANDIDATE_WINDOW", DEFAULT_CANDIDATE_WINDOW, 0, MAX_CANDIDATE_WINDOW
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "similarityThreshold": self.similarity_threshold,
            "keywordOverlapThreshold": self.keyword_overlap_threshold,
            "candidateWindow": self.candidate_window,
        }

    def __repr__(self) -> str:
        return (
            f"EngineConfig(similarity_threshold={self.similarity_threshold}, "
            f"keyword_overlap_threshold={self.keyword_overlap_threshold}, "
            f"candidate_window={self.candidate_window})"
        )
