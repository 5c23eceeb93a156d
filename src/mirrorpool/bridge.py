"""
MirrorPool Bridge -- High-level API for the reflection engine.

Provides the public interface used by the MCP server handlers and the CLI.
All functions are thin wrappers that delegate to the ReflectionEngine
singleton.

Public API (see __all__ for full list):
    Ingestion:  reflect
    Queries:    find_undercurrents, trace_evolution, discover_patterns, trace_ripples
    Synthesis:  synthesis_moments, record_synthesis, resonance_between, track_state
    Depth:      depth_diving, clarity_emergence
    Health:     status
    Export:     export_thoughts, import_thoughts
    Testing:    reset_engine
"""

import atexit
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("mirrorpool.bridge")


# ---------------------------------------------------------------------------
# Lazy singleton
# ---------------------------------------------------------------------------

_engine_instance = None
_engine_lock = threading.Lock()


def _get_engine():
    """Get or create the ReflectionEngine singleton (thread-safe)."""
    global _engine_instance
    if _engine_instance is not None:
        return _engine_instance
    with _engine_lock:
        if _engine_instance is not None:
            return _engine_instance
        from mirrorpool.engine import ReflectionEngine

        _engine_instance = ReflectionEngine()
        atexit.register(_close_engine)
    return _engine_instance


def _close_engine():
    """Close the engine's store on process exit."""
    global _engine_instance
    if _engine_instance is not None:
        try:
            _engine_instance.close()
        except Exception as e:
            logger.debug("Engine close failed at exit: %s", e)


def reset_engine():
    """Reset the singleton (useful for testing)."""
    global _engine_instance
    if _engine_instance is not None:
        try:
            _engine_instance.close()
        except Exception as e:
            logger.debug("Engine close failed during reset: %s", e)
    _engine_instance = None


# ---------------------------------------------------------------------------
# Public API -- Ingestion and queries
# ---------------------------------------------------------------------------


def reflect(
    thought: str,
    depth: str = "deep",
    track_evolution: bool = True,
    created_at: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Ingest a thought and return its echoes, stage, insights and questions."""
    return _get_engine().ingest(
        thought,
        depth_level=depth,
        track_evolution=track_evolution,
        created_at=created_at,
        metadata=metadata,
    )


def find_undercurrents(timeframe: str = "week", min_depth: float = 0.5) -> Dict[str, Any]:
    return _get_engine().find_undercurrents(timeframe=timeframe, min_depth=min_depth)


def trace_evolution(concept: str, show_branches: bool = True) -> Dict[str, Any]:
    return _get_engine().trace_evolution(concept, show_branches=show_branches)


def discover_patterns(pattern_types: Optional[Iterable[str]] = None, threshold: float = 0.3) -> Dict[str, Any]:
    return _get_engine().discover_patterns(types=pattern_types, threshold=threshold)


def trace_ripples(origin_thought: str, max_distance: int = 3) -> Dict[str, Any]:
    return _get_engine().trace_ripples(origin_thought, max_distance=max_distance)


# ---------------------------------------------------------------------------
# Public API -- Synthesis and state
# ---------------------------------------------------------------------------


def synthesis_moments(min_sources: int = 2, include_context: bool = True) -> Dict[str, Any]:
    return _get_engine().find_synthesis_moments(min_sources=min_sources, include_context=include_context)


def record_synthesis(sources: List[str], result: str) -> Dict[str, Any]:
    return _get_engine().record_synthesis(sources, result)


def resonance_between(text_a: str, text_b: str) -> float:
    return _get_engine().resonance_between(text_a, text_b)


def track_state(**metrics: Any) -> Dict[str, Any]:
    return _get_engine().track_state(**metrics)


# ---------------------------------------------------------------------------
# Public API -- Depth
# ---------------------------------------------------------------------------


def depth_diving(thought: str, questions_per_level: int = 3, max_depth: int = 5) -> Dict[str, Any]:
    return _get_engine().depth_diving(thought, questions_per_level=questions_per_level, max_depth=max_depth)


def clarity_emergence(foggy_thought: str, method: str = "questions") -> Dict[str, Any]:
    return _get_engine().clarity_emergence(foggy_thought, method=method)


# ---------------------------------------------------------------------------
# Public API -- Health / Export / Import
# ---------------------------------------------------------------------------


def status() -> Dict[str, Any]:
    """Return a machine-readable health/status dict."""
    try:
        stats = _get_engine().stats()
    except Exception as e:
        logger.error("Status check failed: %s", e)
        return {"ok": False, "error": str(e)}
    stats["ok"] = True
    return stats


def export_thoughts(filepath: str) -> Dict[str, Any]:
    """Export every thought to a JSONL file."""
    result = _get_engine().export_corpus(Path(filepath))
    logger.info("Exported thoughts to %s", filepath)
    return result


def import_thoughts(filepath: str) -> Dict[str, Any]:
    """Re-ingest a JSONL export."""
    result = _get_engine().import_corpus(Path(filepath))
    logger.info("Imported thoughts from %s", filepath)
    return result


# ---------------------------------------------------------------------------
# Module exports
# ---------------------------------------------------------------------------

__all__ = [
    "reflect",
    "find_undercurrents",
    "trace_evolution",
    "discover_patterns",
    "trace_ripples",
    "synthesis_moments",
    "record_synthesis",
    "resonance_between",
    "track_state",
    "depth_diving",
    "clarity_emergence",
    "status",
    "export_thoughts",
    "import_thoughts",
    "reset_engine",
]
