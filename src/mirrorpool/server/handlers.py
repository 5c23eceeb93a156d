"""
MirrorPool MCP Handlers -- Maps tool names to async handler functions.

Each handler delegates to mirrorpool.bridge for the actual operation and
returns an MCP-compatible response dict whose text is the JSON result.
Engine errors are reported as ``{"error": {"kind", "message"}}`` with
``isError`` set; nothing a single call does can take the server down.
"""

import json
import logging
from typing import Any, Dict

from mirrorpool.errors import MirrorPoolError

logger = logging.getLogger("mirrorpool.server.handlers")


def _clamp_int(value, default: int, min_val: int = 1, max_val: int = 10000) -> int:
    """Clamp a numeric argument to safe bounds."""
    if value is None:
        return default
    try:
        v = int(value)
        return max(min_val, min(v, max_val))
    except (TypeError, ValueError):
        return default


def _clamp_float(value, default: float, min_val: float = 0.0, max_val: float = 1.0) -> float:
    if value is None:
        return default
    try:
        v = float(value)
        return max(min_val, min(v, max_val))
    except (TypeError, ValueError):
        return default


def _flag(value, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no")
    return bool(value)


# ============================================================================
# Response Helpers
# ============================================================================


def mcp_response(result: Any) -> dict:
    """Build a successful MCP response carrying JSON text."""
    text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
    return {"content": [{"type": "text", "text": text}]}


def mcp_error(message: str, kind: str = "validation") -> dict:
    """Build an error MCP response."""
    payload = {"error": {"kind": kind, "message": message}}
    return {"content": [{"type": "text", "text": json.dumps(payload)}], "isError": True}


def _failure(tool: str, exc: Exception) -> dict:
    if isinstance(exc, MirrorPoolError):
        logger.info("%s rejected: %s", tool, exc.message)
        return mcp_error(exc.message, exc.kind)
    logger.exception("%s failed", tool)
    return mcp_error(f"{tool} failed: {exc}", "internal")


# ============================================================================
# Handler: reflect_thought
# ============================================================================


async def handle_reflect_thought(arguments: dict) -> dict:
    """Ingest a thought; echoes, stage, insights and questions come back."""
    thought = (arguments.get("thought") or "").strip()
    if not thought:
        return mcp_error("thought is required")

    try:
        from mirrorpool.bridge import reflect

        result = reflect(
            thought,
            depth=arguments.get("depth") or "deep",
            track_evolution=_flag(arguments.get("include_evolution")),
        )
        return mcp_response(result)
    except Exception as e:
        return _failure("reflect_thought", e)


# ============================================================================
# Handler: find_undercurrents
# ============================================================================


async def handle_find_undercurrents(arguments: dict) -> dict:
    timeframe = arguments.get("timeframe") or "week"
    min_depth = _clamp_float(arguments.get("min_depth"), default=0.5)
    try:
        from mirrorpool.bridge import find_undercurrents

        return mcp_response(find_undercurrents(timeframe=timeframe, min_depth=min_depth))
    except Exception as e:
        return _failure("find_undercurrents", e)


# ============================================================================
# Handler: trace_evolution
# ============================================================================


async def handle_trace_evolution(arguments: dict) -> dict:
    concept = (arguments.get("concept") or "").strip()
    if not concept:
        return mcp_error("concept is required")
    try:
        from mirrorpool.bridge import trace_evolution

        return mcp_response(trace_evolution(concept, show_branches=_flag(arguments.get("show_branches"))))
    except Exception as e:
        return _failure("trace_evolution", e)


# ============================================================================
# Handler: discover_patterns
# ============================================================================


async def handle_discover_patterns(arguments: dict) -> dict:
    pattern_types = arguments.get("pattern_types")
    if pattern_types is not None and not isinstance(pattern_types, (list, tuple, str)):
        return mcp_error("pattern_types must be a list of strings")
    threshold = _clamp_float(arguments.get("threshold"), default=0.3)
    try:
        from mirrorpool.bridge import discover_patterns

        return mcp_response(discover_patterns(pattern_types=pattern_types, threshold=threshold))
    except Exception as e:
        return _failure("discover_patterns", e)


# ============================================================================
# Handler: synthesis_moments
# ============================================================================


async def handle_synthesis_moments(arguments: dict) -> dict:
    min_sources = _clamp_int(arguments.get("min_sources"), default=2, min_val=2, max_val=15)
    try:
        from mirrorpool.bridge import synthesis_moments

        return mcp_response(
            synthesis_moments(min_sources=min_sources, include_context=_flag(arguments.get("include_context")))
        )
    except Exception as e:
        return _failure("synthesis_moments", e)


# ============================================================================
# Handler: depth_diving
# ============================================================================


async def handle_depth_diving(arguments: dict) -> dict:
    thought = (arguments.get("thought") or "").strip()
    if not thought:
        return mcp_error("thought is required")
    questions = _clamp_int(arguments.get("questions_per_level"), default=3, min_val=1, max_val=5)
    max_depth = _clamp_int(arguments.get("max_depth"), default=5, min_val=1, max_val=10)
    try:
        from mirrorpool.bridge import depth_diving

        return mcp_response(depth_diving(thought, questions_per_level=questions, max_depth=max_depth))
    except Exception as e:
        return _failure("depth_diving", e)


# ============================================================================
# Handler: ripple_effects
# ============================================================================


async def handle_ripple_effects(arguments: dict) -> dict:
    origin = (arguments.get("origin_thought") or "").strip()
    if not origin:
        return mcp_error("origin_thought is required")
    distance = _clamp_int(arguments.get("ripple_distance"), default=3, min_val=1, max_val=5)
    try:
        from mirrorpool.bridge import trace_ripples

        return mcp_response(trace_ripples(origin, max_distance=distance))
    except Exception as e:
        return _failure("ripple_effects", e)


# ============================================================================
# Handler: clarity_emergence
# ============================================================================


async def handle_clarity_emergence(arguments: dict) -> dict:
    thought = (arguments.get("foggy_thought") or "").strip()
    if not thought:
        return mcp_error("foggy_thought is required")
    method = arguments.get("clarification_method") or "questions"
    try:
        from mirrorpool.bridge import clarity_emergence

        return mcp_response(clarity_emergence(thought, method=method))
    except Exception as e:
        return _failure("clarity_emergence", e)


# ============================================================================
# Handler Registry
# ============================================================================

HANDLERS: Dict[str, Any] = {
    "reflect_thought": handle_reflect_thought,
    "find_undercurrents": handle_find_undercurrents,
    "trace_evolution": handle_trace_evolution,
    "discover_patterns": handle_discover_patterns,
    "synthesis_moments": handle_synthesis_moments,
    "depth_diving": handle_depth_diving,
    "ripple_effects": handle_ripple_effects,
    "clarity_emergence": handle_clarity_emergence,
}
