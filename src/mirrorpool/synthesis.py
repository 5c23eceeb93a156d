"""
MirrorPool Synthesis -- merge moments, resonance field and awareness states.

A synthesis moment records two or more source thoughts merging into a newer
one. Every moment feeds a cumulative resonance field between its sources.
Consciousness states are free-form metric snapshots; consecutive snapshots are
classified as leap, shift, drift or stability by their total absolute change.

The tracker only persists; the engine notifies observers once the enclosing
transaction has committed.
"""

import json
import logging
import math
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mirrorpool.errors import ValidationError
from mirrorpool.graph import ConnectionGraph
from mirrorpool.lexicon import content_hash, extract_keywords, token_set, tokenize
from mirrorpool.patterns import time_bucket
from mirrorpool.similarity import jaccard
from mirrorpool.sqlite_store import SQLiteStore, format_ts, parse_ts
from mirrorpool.types import ConsciousnessState, SynthesisMoment

logger = logging.getLogger("mirrorpool.synthesis")

EMERGENCE_THRESHOLD = 0.7
CONTEXT_WINDOW = timedelta(minutes=5)
IMMEDIATE_WINDOW = timedelta(minutes=10)

CONNECTORS = ("therefore", "thus", "because", "since", "and", "but", "however")
QUALITY_WORDS = (
    "harmony", "chaos", "beauty", "truth", "wisdom",
    "clarity", "mystery", "unity", "diversity", "emergence",
)
TIME_INFLUENCE = {
    "late-night": "deep",
    "morning": "fresh",
    "afternoon": "focused",
    "evening": "reflective",
}

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def complexity(texts: Sequence[str]) -> float:
    unique_words = set()
    total_length = 0
    for text in texts:
        unique_words.update(tokenize(text))
        total_length += len(text)
    return math.log(len(unique_words) + 1) * math.log(total_length + 1)


def novelty(sources: Sequence[str], result: str) -> float:
    """Share of result words that appear in no source."""
    source_words = set()
    for s in sources:
        source_words.update(tokenize(s))
    result_words = tokenize(result)
    if not result_words:
        return 0.0
    return sum(1 for w in result_words if w not in source_words) / len(result_words)


def coherence(text: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    if len(sentences) <= 1:
        return 1.0
    hits = sum(
        1
        for sentence in sentences
        for connector in CONNECTORS
        if connector in sentence.lower()
    )
    return min(0.5 + 0.2 * hits, 1.0)


def emergence_score(sources: Sequence[str], result: str) -> float:
    source_complexity = complexity(sources)
    if source_complexity <= 0:
        return 0.0
    score = (complexity([result]) / source_complexity) * novelty(sources, result) * coherence(result)
    return min(max(score, 0.0), 1.0)


def source_resonance(sources: Sequence[str]) -> float:
    """Mean pairwise token-set Jaccard across sources."""
    sets = [token_set(s) for s in sources]
    pairs = [(i, j) for i in range(len(sets)) for j in range(i + 1, len(sets))]
    if not pairs:
        return 0.0
    return sum(jaccard(sets[i], sets[j]) for i, j in pairs) / len(pairs)


def emergent_qualities(sources: Sequence[str], synthesis: str) -> List[str]:
    present = {q for s in sources for q in QUALITY_WORDS if q in s.lower()}
    lowered = synthesis.lower()
    return [q for q in QUALITY_WORDS if q not in present and q in lowered]


def catalysts(sources: Sequence[str]) -> List[Dict[str, str]]:
    found = []
    for source in sources:
        lowered = source.lower()
        if "?" in source:
            found.append({"type": "question", "content": source})
        if "paradox" in lowered or "contradiction" in lowered:
            found.append({"type": "paradox", "content": source})
        if "imagine" in lowered or "what if" in lowered:
            found.append({"type": "imagination", "content": source})
    return found


def _field_key(text: str) -> str:
    return content_hash(text)[:16]


class SynthesisTracker:
    """Persists synthesis moments, the resonance field and consciousness states."""

    def __init__(self, store: SQLiteStore, graph: ConnectionGraph):
        self.store = store
        self.graph = graph
        self._init_schema()

    def _init_schema(self) -> None:
        self.store.execute("""
            CREATE TABLE IF NOT EXISTS synthesis_moments (
                id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                sources TEXT NOT NULL,
                source_ids TEXT NOT NULL DEFAULT '[]',
                synthesis TEXT NOT NULL,
                result_id TEXT,
                emergence_score REAL NOT NULL,
                resonance REAL NOT NULL
            )
        """)
        self.store.execute("""
            CREATE TABLE IF NOT EXISTS resonance_field (
                source_key TEXT NOT NULL,
                other_key TEXT NOT NULL,
                resonance REAL NOT NULL DEFAULT 0.0,
                UNIQUE(source_key, other_key)
            )
        """)
        self.store.execute("""
            CREATE TABLE IF NOT EXISTS consciousness_states (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                created_at TEXT NOT NULL,
                awareness REAL NOT NULL,
                coherence REAL NOT NULL,
                depth REAL NOT NULL,
                integration REAL NOT NULL,
                snapshot TEXT
            )
        """)
        self.store.commit()

    # ------------------------------------------------------------------
    # Synthesis moments
    # ------------------------------------------------------------------

    def record_synthesis(
        self,
        sources: Sequence[str],
        result: str,
        source_ids: Sequence[str] = (),
        result_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> SynthesisMoment:
        if not isinstance(sources, (list, tuple)) or len(sources) < 2:
            raise ValidationError("a synthesis needs at least two sources")
        if any(not isinstance(s, str) or not s.strip() for s in sources):
            raise ValidationError("synthesis sources must be non-empty strings")
        if not isinstance(result, str) or not result.strip():
            raise ValidationError("synthesis result must be a non-empty string")

        moment = SynthesisMoment(
            id=f"syn-{uuid.uuid4().hex[:12]}",
            sources=[s.strip() for s in sources],
            synthesis=result.strip(),
            emergence_score=emergence_score(sources, result),
            resonance=source_resonance(sources),
            created_at=created_at,
            source_ids=list(source_ids),
            result_id=result_id,
        )
        self.store.execute(
            """INSERT INTO synthesis_moments
               (id, created_at, sources, source_ids, synthesis, result_id, emergence_score, resonance)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                moment.id,
                format_ts(moment.created_at),
                json.dumps(moment.sources),
                json.dumps(moment.source_ids),
                moment.synthesis,
                moment.result_id,
                moment.emergence_score,
                moment.resonance,
            ),
        )
        self._update_resonance_field(moment)
        self.store.commit()
        logger.debug("synthesis %s recorded from %d sources (emergence %.3f)",
                     moment.id, len(moment.sources), moment.emergence_score)
        return moment

    def _update_resonance_field(self, moment: SynthesisMoment) -> None:
        keys = [_field_key(s) for s in moment.sources]
        for i, key in enumerate(keys):
            for j, other in enumerate(keys):
                if i == j or key == other:
                    continue
                self.store.execute(
                    """INSERT INTO resonance_field (source_key, other_key, resonance)
                       VALUES (?, ?, ?)
                       ON CONFLICT(source_key, other_key)
                       DO UPDATE SET resonance = resonance + excluded.resonance""",
                    (key, other, moment.resonance),
                )

    def resonance_between(self, text_a: str, text_b: str) -> float:
        """Cumulative resonance recorded between two source texts."""
        row = self.store.execute(
            "SELECT resonance FROM resonance_field WHERE source_key = ? AND other_key = ?",
            (_field_key(text_a), _field_key(text_b)),
        ).fetchone()
        return row[0] if row else 0.0

    def moments(self) -> List[SynthesisMoment]:
        rows = self.store.execute(
            """SELECT id, created_at, sources, source_ids, synthesis, result_id, emergence_score, resonance
               FROM synthesis_moments ORDER BY created_at, rowid"""
        ).fetchall()
        return [
            SynthesisMoment(
                id=r[0],
                created_at=parse_ts(r[1]),
                sources=json.loads(r[2]),
                source_ids=json.loads(r[3]),
                synthesis=r[4],
                result_id=r[5],
                emergence_score=r[6],
                resonance=r[7],
            )
            for r in rows
        ]

    def moment_count(self) -> int:
        return self.store.execute("SELECT COUNT(*) FROM synthesis_moments").fetchone()[0]

    def find_synthesis_moments(self, min_sources: int = 2, include_context: bool = True) -> Dict[str, Any]:
        selected = [m for m in self.moments() if len(m.sources) >= min_sources]
        entries = []
        for moment in selected:
            entry = moment.to_dict()
            if include_context:
                entry["context"] = self._context(moment)
                entry["rippleEffects"] = self._ripple_effects(moment)
            entries.append(entry)

        return {
            "count": len(entries),
            "moments": entries,
            "patterns": self._patterns(selected),
            "emergentProperties": self._emergent_properties(selected),
        }

    def _context(self, moment: SynthesisMoment) -> Dict[str, Any]:
        excluded = set(moment.source_ids)
        if moment.result_id:
            excluded.add(moment.result_id)
        preceding = [
            {"id": t.id, "text": t.text, "timestamp": t.created_at.isoformat()}
            for t in self.store.query_by_time_range(moment.created_at - CONTEXT_WINDOW, moment.created_at)
            if t.id not in excluded
        ]
        bucket = time_bucket(moment.created_at.hour)
        return {
            "precedingThoughts": preceding,
            "catalysts": catalysts(moment.sources),
            "environmentalFactors": [{"type": "time", "value": bucket, "influence": TIME_INFLUENCE[bucket]}],
        }

    def _ripple_effects(self, moment: SynthesisMoment) -> Dict[str, List[Dict[str, str]]]:
        seen = set(moment.source_ids)
        if moment.result_id:
            seen.add(moment.result_id)
        keywords = set(extract_keywords(moment.synthesis))

        immediate = []
        if keywords:
            window = self.store.query_by_time_range(moment.created_at, moment.created_at + IMMEDIATE_WINDOW)
            for t in window:
                if t.id not in seen and keywords.intersection(t.keywords):
                    seen.add(t.id)
                    immediate.append(t.id)

        secondary = self._expand(immediate, seen)
        tertiary = self._expand(secondary, seen)
        return {
            "immediate": self._describe(immediate),
            "secondary": self._describe(secondary),
            "tertiary": self._describe(tertiary),
        }

    def _expand(self, frontier: List[str], seen: set) -> List[str]:
        reached = []
        for thought_id in frontier:
            for target in self.graph.neighbor_ids(thought_id):
                if target not in seen:
                    seen.add(target)
                    reached.append(target)
        return reached

    def _describe(self, thought_ids: List[str]) -> List[Dict[str, str]]:
        found = self.store.get_many(thought_ids)
        return [{"id": tid, "text": found[tid].text} for tid in thought_ids if tid in found]

    @staticmethod
    def _patterns(moments: List[SynthesisMoment]) -> List[Dict[str, Any]]:
        if not moments:
            return []
        total = len(moments)
        patterns = []

        hour_counts: Dict[int, int] = {}
        for m in moments:
            hour_counts[m.created_at.hour] = hour_counts.get(m.created_at.hour, 0) + 1
        peaks = sorted(
            ((h, c) for h, c in hour_counts.items() if c > total / 24),
            key=lambda hc: (-hc[1], hc[0]),
        )
        if peaks:
            patterns.append({
                "type": "temporal",
                "patterns": [{
                    "type": "peak-hours",
                    "hours": [h for h, _ in peaks],
                    "strength": round(peaks[0][1] / total, 4),
                }],
            })

        source_counts: Dict[int, int] = {}
        for m in moments:
            source_counts[len(m.sources)] = source_counts.get(len(m.sources), 0) + 1
        preferred = sorted(source_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:3]
        patterns.append({
            "type": "source-combination",
            "patterns": [{
                "type": "preferred-source-count",
                "counts": [n for n, _ in preferred],
                "frequency": round(preferred[0][1] / total, 4),
            }],
        })

        high = [m for m in moments if m.emergence_score > EMERGENCE_THRESHOLD]
        if high:
            patterns.append({
                "type": "emergence",
                "patterns": [{
                    "type": "high-emergence-rate",
                    "rate": round(len(high) / total, 4),
                    "threshold": EMERGENCE_THRESHOLD,
                }],
            })
        return patterns

    @staticmethod
    def _emergent_properties(moments: List[SynthesisMoment]) -> List[Dict[str, Any]]:
        properties = []
        for m in moments:
            qualities = emergent_qualities(m.sources, m.synthesis)
            if qualities:
                properties.append({
                    "momentId": m.id,
                    "qualities": qualities,
                    "strength": round(m.emergence_score, 4),
                })
        properties.sort(key=lambda p: -p["strength"])
        return properties

    # ------------------------------------------------------------------
    # Consciousness states
    # ------------------------------------------------------------------

    def latest_state(self) -> Optional[ConsciousnessState]:
        row = self.store.execute(
            """SELECT id, created_at, awareness, coherence, depth, integration, snapshot
               FROM consciousness_states ORDER BY seq DESC LIMIT 1"""
        ).fetchone()
        if row is None:
            return None
        return ConsciousnessState(
            id=row[0],
            created_at=parse_ts(row[1]),
            awareness=row[2],
            coherence=row[3],
            depth=row[4],
            integration=row[5],
            snapshot=json.loads(row[6]) if row[6] else {},
        )

    def track_state(
        self,
        awareness: float = 0.0,
        coherence: float = 0.0,
        depth: float = 0.0,
        integration: float = 0.0,
        snapshot: Optional[Dict[str, Any]] = None,
    ) -> Tuple[ConsciousnessState, Optional[Dict[str, Any]]]:
        """Persist a state snapshot; returns (state, transition from the previous one)."""
        values = {}
        for name, value in zip(ConsciousnessState.METRICS, (awareness, coherence, depth, integration)):
            try:
                values[name] = float(value or 0.0)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be a number (got {value!r})") from None

        previous = self.latest_state()
        state = ConsciousnessState(
            id=f"state-{uuid.uuid4().hex[:12]}",
            snapshot=snapshot if snapshot is not None else dict(values),
            created_at=datetime.now(timezone.utc),
            **values,
        )
        self.store.execute(
            """INSERT INTO consciousness_states
               (id, created_at, awareness, coherence, depth, integration, snapshot)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                state.id,
                format_ts(state.created_at),
                state.awareness,
                state.coherence,
                state.depth,
                state.integration,
                json.dumps(state.snapshot),
            ),
        )
        self.store.commit()
        transition = analyze_transition(previous, state) if previous is not None else None
        return state, transition


def analyze_transition(previous: ConsciousnessState, current: ConsciousnessState) -> Dict[str, Any]:
    delta = {
        metric: getattr(current, metric) - getattr(previous, metric)
        for metric in ConsciousnessState.METRICS
    }
    total = sum(abs(d) for d in delta.values())
    if total > 2:
        kind = "leap"
    elif total > 1:
        kind = "shift"
    elif total > 0.5:
        kind = "drift"
    else:
        kind = "stability"
    return {
        "from": previous.id,
        "to": current.id,
        "delta": {k: round(v, 4) for k, v in delta.items()},
        "type": kind,
        "significance": round(total / len(ConsciousnessState.METRICS), 4),
    }
