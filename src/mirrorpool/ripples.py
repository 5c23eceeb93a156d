"""
MirrorPool Ripple Tracer -- bounded breadth-first influence propagation.
"""

import logging
from typing import Any, Dict, List, Set

from mirrorpool.graph import ConnectionGraph
from mirrorpool.sqlite_store import SQLiteStore

logger = logging.getLogger("mirrorpool.ripples")


def _empty(origin_text: str, origin_id=None) -> Dict[str, Any]:
    return {
        "origin": origin_text,
        "originId": origin_id,
        "found": origin_id is not None,
        "waves": [],
        "totalImpact": 0.0,
        "affectedThoughts": 0,
    }


def trace_ripples(
    store: SQLiteStore,
    graph: ConnectionGraph,
    origin_text: str,
    max_distance: int = 3,
) -> Dict[str, Any]:
    """Follow outgoing edges from the thought whose text is ``origin_text``.

    Wave ``d`` holds the thoughts first reached at hop ``d``, each contributing
    ``resonance / d``. Empty waves are never emitted, each node is visited at
    most once, and an unknown origin yields an empty result.
    """
    origin = store.get_by_text(origin_text)
    if origin is None:
        logger.debug("ripple origin not in corpus: %r", origin_text[:60])
        return _empty(origin_text)
    if max_distance < 1:
        return _empty(origin_text, origin.id)

    visited: Set[str] = {origin.id}
    frontier: List[str] = [origin.id]
    waves: List[Dict[str, Any]] = []
    total_impact = 0.0

    for distance in range(1, max_distance + 1):
        if not frontier:
            break
        decay = 1.0 / distance
        reached: List[str] = []
        for node_id in frontier:
            for target_id in graph.neighbor_ids(node_id):
                if target_id in visited:
                    continue
                visited.add(target_id)
                reached.append(target_id)

        if not reached:
            break

        thoughts = store.get_many(reached)
        entries = []
        wave_resonance = 0.0
        for tid in reached:
            t = thoughts.get(tid)
            if t is None:
                continue
            contribution = t.resonance * decay
            wave_resonance += contribution
            entries.append({"id": t.id, "text": t.text, "resonance": round(contribution, 4)})

        waves.append({
            "distance": distance,
            "strength": round(decay, 4),
            "thoughts": entries,
            "resonance": round(wave_resonance, 4),
        })
        total_impact += wave_resonance
        frontier = reached

    return {
        "origin": origin.text,
        "originId": origin.id,
        "found": True,
        "waves": waves,
        "totalImpact": round(total_impact, 4),
        "affectedThoughts": len(visited) - 1,
    }
