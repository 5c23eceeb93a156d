"""
MirrorPool Patterns -- deterministic pattern discovery over the corpus.

Four pattern families, each derived from stored thoughts:

- emotional:   share of thoughts carrying each affect label
- conceptual:  extracted themes, strength = theme depth
- behavioral:  share of thoughts per expression style
- temporal:    share of thoughts per UTC time-of-day bucket

A pattern's trajectory compares its occurrence rate in the later half of the
corpus with the earlier half.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from mirrorpool.errors import ValidationError
from mirrorpool.sqlite_store import SQLiteStore
from mirrorpool.themes import extract_themes
from mirrorpool.types import DEPTH_WEIGHTS, Thought

logger = logging.getLogger("mirrorpool.patterns")

PATTERN_TYPES = ("emotional", "conceptual", "behavioral", "temporal")
DEFAULT_PATTERN_TYPES = ("emotional", "conceptual")

ASCENDING_RATIO = 1.1
DESCENDING_RATIO = 0.9

CONCEPT_MAP = {
    "consciousness": ["awareness", "being", "experience"],
    "identity": ["self", "essence", "becoming"],
    "transformation": ["change", "evolution", "metamorphosis"],
    "connection": ["relationship", "resonance", "unity"],
    "emergence": ["becoming", "arising", "manifestation"],
    "change": ["transformation", "growth", "transition"],
    "growth": ["change", "becoming", "learning"],
}

# (name, start hour inclusive, end hour exclusive); late-night wraps midnight
TIME_BUCKETS = (
    ("morning", 6, 12),
    ("afternoon", 12, 17),
    ("evening", 17, 22),
    ("late-night", 22, 6),
)


def time_bucket(hour: int) -> str:
    for name, start, end in TIME_BUCKETS:
        if start < end:
            if start <= hour < end:
                return name
        elif hour >= start or hour < end:
            return name
    return "late-night"


def trajectory(thoughts: Sequence[Thought], matches: Callable[[Thought], bool]) -> str:
    """ascending / descending / stable from later-half vs earlier-half rates."""
    if len(thoughts) < 2:
        return "stable"
    half = len(thoughts) // 2
    earlier, later = thoughts[:half], thoughts[half:]
    earlier_rate = sum(1 for t in earlier if matches(t)) / len(earlier)
    later_rate = sum(1 for t in later if matches(t)) / len(later)
    if earlier_rate == 0:
        return "ascending" if later_rate > 0 else "stable"
    ratio = later_rate / earlier_rate
    if ratio > ASCENDING_RATIO:
        return "ascending"
    if ratio < DESCENDING_RATIO:
        return "descending"
    return "stable"


def _share_patterns(
    pattern_type: str,
    thoughts: Sequence[Thought],
    labels_of: Callable[[Thought], Iterable[str]],
    exclude: Iterable[str] = (),
) -> List[Dict[str, Any]]:
    members: Dict[str, List[Thought]] = {}
    excluded = set(exclude)
    for t in thoughts:
        for label in labels_of(t):
            if label not in excluded:
                members.setdefault(label, []).append(t)

    patterns = []
    for name, group in members.items():
        patterns.append({
            "type": pattern_type,
            "name": name,
            "strength": round(len(group) / len(thoughts), 4),
            "occurrences": len(group),
            "trajectory": trajectory(thoughts, lambda t, n=name: n in labels_of(t)),
            "lastSeen": group[-1].created_at.isoformat(),
            "depth": round(sum(DEPTH_WEIGHTS[t.depth_level] for t in group) / len(group), 4),
        })
    return patterns


def _conceptual_patterns(thoughts: Sequence[Thought]) -> List[Dict[str, Any]]:
    patterns = []
    for theme in extract_themes(thoughts):
        member_ids = set(theme.member_thought_ids)
        co_occurring: Dict[str, int] = {}
        for t in thoughts:
            if t.id in member_ids:
                for kw in t.keywords:
                    if kw != theme.name:
                        co_occurring[kw] = co_occurring.get(kw, 0) + 1
        top = sorted(co_occurring, key=lambda k: (-co_occurring[k], k))[:3]
        related = list(dict.fromkeys(CONCEPT_MAP.get(theme.name, []) + top))
        patterns.append({
            "type": "conceptual",
            "name": theme.name,
            "strength": round(theme.depth, 4),
            "occurrences": theme.occurrence_count,
            "trajectory": trajectory(thoughts, lambda t, n=theme.name: n in t.keywords),
            "lastSeen": theme.last_seen.isoformat() if theme.last_seen else None,
            "depth": round(theme.depth, 4),
            "relatedConcepts": related,
        })
    return patterns


def analyze_pattern_type(pattern_type: str, thoughts: Sequence[Thought]) -> List[Dict[str, Any]]:
    if not thoughts:
        return []
    if pattern_type == "emotional":
        return _share_patterns("emotional", thoughts, lambda t: t.affect_tags, exclude=("neutral",))
    if pattern_type == "conceptual":
        return _conceptual_patterns(thoughts)
    if pattern_type == "behavioral":
        return _share_patterns("behavioral", thoughts, lambda t: (t.expression_style,), exclude=("neutral",))
    if pattern_type == "temporal":
        return _share_patterns("temporal", thoughts, lambda t: (time_bucket(t.created_at.hour),))
    raise ValidationError(f"pattern type must be one of: {', '.join(PATTERN_TYPES)} (got {pattern_type!r})")


def _meta_patterns(all_patterns: List[Dict[str, Any]], emerging: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    meta = []
    if all_patterns:
        dominant = all_patterns[0]
        meta.append({
            "type": "dominant_pattern",
            "message": f"Your reflections are currently dominated by {dominant['name']} patterns",
            "significance": dominant["strength"],
        })
    if emerging:
        meta.append({
            "type": "emerging_pattern",
            "message": f"{emerging[0]['name']} is becoming more prominent in your thoughts",
            "trajectory": "ascending",
        })
    diversity = len({p["type"] for p in all_patterns})
    if diversity > 2:
        meta.append({
            "type": "pattern_diversity",
            "message": "Your reflection patterns show rich diversity across multiple dimensions",
            "dimensions": diversity,
        })
    return meta


def discover_patterns(
    store: SQLiteStore,
    types: Optional[Iterable[str]] = None,
    threshold: float = 0.3,
) -> Dict[str, Any]:
    """Ranked patterns per requested type, plus emerging, fading and meta patterns."""
    if isinstance(types, str):
        types = [types]
    requested = list(dict.fromkeys(types if types is not None else DEFAULT_PATTERN_TYPES))
    unknown = [t for t in requested if t not in PATTERN_TYPES]
    if unknown:
        raise ValidationError(f"pattern type must be one of: {', '.join(PATTERN_TYPES)} (got {unknown[0]!r})")
    if not 0.0 <= threshold <= 1.0:
        raise ValidationError(f"threshold must be within [0, 1] (got {threshold})")

    thoughts = store.all_thoughts()
    by_type: Dict[str, List[Dict[str, Any]]] = {}
    for pattern_type in requested:
        kept = [p for p in analyze_pattern_type(pattern_type, thoughts) if p["strength"] > threshold]
        kept.sort(key=lambda p: (-p["strength"], p["name"]))
        by_type[pattern_type] = kept

    all_patterns = sorted(
        (p for group in by_type.values() for p in group),
        key=lambda p: (-p["strength"], p["type"], p["name"]),
    )
    emerging = [p for p in all_patterns if p["trajectory"] == "ascending" and p["strength"] > threshold]
    fading = [p for p in all_patterns if p["trajectory"] == "descending" and p["strength"] < threshold * 2]
    logger.debug("discovered %d patterns across %d types", len(all_patterns), len(requested))

    return {
        "thoughtCount": len(thoughts),
        "threshold": threshold,
        "patterns": by_type,
        "emergingPatterns": emerging,
        "fadingPatterns": fading,
        "metaPatterns": _meta_patterns(all_patterns, emerging),
    }
