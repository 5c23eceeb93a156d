"""
MirrorPool Themes -- keyword clusters, composite depth and cross-currents.

Depth of a theme combines how often its keyword appears relative to the most
frequent one, how regularly it recurs, and how far its wording has drifted
between first and last occurrence:

    depth = 0.3 * normalized_frequency + 0.4 * consistency + 0.3 * evolution_spread
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from mirrorpool.errors import ValidationError
from mirrorpool.similarity import similarity
from mirrorpool.sqlite_store import SQLiteStore, to_utc
from mirrorpool.types import DEPTH_WEIGHTS, Theme, Thought

FREQUENCY_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.4
SPREAD_WEIGHT = 0.3

TIMEFRAMES = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "all": None,
}

POLARITIES = (
    ("stillness", "movement"),
    ("certainty", "doubt"),
    ("connection", "solitude"),
    ("creation", "destruction"),
    ("hope", "despair"),
    ("control", "surrender"),
)


def _consistency(members: Sequence[Thought]) -> float:
    """1 / (1 + variance/mean) of inter-arrival gaps in seconds."""
    if len(members) < 2:
        return 1.0
    gaps = [
        (b.created_at - a.created_at).total_seconds()
        for a, b in zip(members, members[1:])
    ]
    mean = sum(gaps) / len(gaps)
    if mean <= 0:
        return 1.0
    variance = sum((g - mean) ** 2 for g in gaps) / len(gaps)
    return 1.0 / (1.0 + variance / mean)


def extract_themes(thoughts: Sequence[Thought], corpus_size: Optional[int] = None) -> List[Theme]:
    """Group thoughts by keyword and score each group, deepest first (ties by name)."""
    ordered = sorted(thoughts, key=lambda t: t.seq)
    groups: Dict[str, List[Thought]] = {}
    for t in ordered:
        for keyword in dict.fromkeys(t.keywords):
            groups.setdefault(keyword, []).append(t)
    if not groups:
        return []

    size = corpus_size if corpus_size else len(ordered)
    max_count = max(len(members) for members in groups.values())
    themes = []
    for name, members in groups.items():
        count = len(members)
        nf = count / max_count
        spread = 1.0 - similarity(members[0].text, members[-1].text)
        depth = FREQUENCY_WEIGHT * nf + CONSISTENCY_WEIGHT * _consistency(members) + SPREAD_WEIGHT * spread
        depth = min(max(depth, 0.0), 1.0)
        total_depth = sum(DEPTH_WEIGHTS[m.depth_level] for m in members)
        average_depth = total_depth / count
        themes.append(Theme(
            name=name,
            occurrence_count=count,
            total_depth=total_depth,
            strength_score=count * average_depth / size,
            depth=depth,
            member_thought_ids=[m.id for m in members],
            first_seen=members[0].created_at,
            last_seen=members[-1].created_at,
        ))

    themes.sort(key=lambda th: (-th.depth, th.name))
    return themes


def find_cross_currents(themes: Sequence[Theme]) -> List[Dict[str, Any]]:
    """Tension between opposite poles of the fixed polarity lexicon.

    A pair is reported only when both poles appear in some theme name.
    """
    currents = []
    for pole_a, pole_b in POLARITIES:
        theme_a = next((t for t in themes if pole_a in t.name), None)
        theme_b = next((t for t in themes if pole_b in t.name), None)
        if theme_a is None or theme_b is None:
            continue
        s_a, s_b = theme_a.strength_score, theme_b.strength_score
        high = max(s_a, s_b)
        currents.append({
            "themeA": theme_a.name,
            "themeB": theme_b.name,
            "polarity": [pole_a, pole_b],
            "tension": round(abs(s_a - s_b), 4),
            "balance": round(min(s_a, s_b) / high, 4) if high > 0 else 1.0,
        })
    return currents


def find_undercurrents(
    store: SQLiteStore,
    timeframe: str = "week",
    min_depth: float = 0.5,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Themes of thoughts created inside the timeframe with depth >= min_depth."""
    if timeframe not in TIMEFRAMES:
        raise ValidationError(f"timeframe must be one of: {', '.join(TIMEFRAMES)} (got {timeframe!r})")
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    window = TIMEFRAMES[timeframe]
    window_start = now - window if window is not None else None

    thoughts = store.query_by_time_range(window_start, now)
    themes = [t for t in extract_themes(thoughts) if t.depth >= min_depth]
    dominant = max(themes, key=lambda t: (t.strength_score, t.depth), default=None)

    return {
        "timeframe": timeframe,
        "windowStart": window_start.isoformat() if window_start else None,
        "thoughtCount": len(thoughts),
        "themes": [t.to_dict() for t in themes],
        "dominantTheme": dominant.to_dict() if dominant else None,
        "flowStrength": round(dominant.strength_score, 4) if dominant else 0.0,
        "crossCurrents": find_cross_currents(themes),
    }
