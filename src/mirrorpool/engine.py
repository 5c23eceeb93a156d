"""
MirrorPool Reflection Engine -- ingestion and the read-side queries.

Ingestion is the only mutating path over thoughts and edges:

    text -> lexicon (keywords, affect, style)
         -> compare with the most recent ``candidate_window`` thoughts
         -> echoes become reflection/influence edges
         -> evolution stage stamped (write-once)
         -> synthesis recorded when two or more echoes converge
         -> commit, then observers are notified

Everything runs inside one store transaction, so a failure at any step
leaves the corpus exactly as it was.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from mirrorpool import depth as depth_analyzer
from mirrorpool.config import EngineConfig
from mirrorpool.errors import NotFoundError, ValidationError
from mirrorpool.evolution import EvolutionTracker
from mirrorpool.graph import ConnectionGraph
from mirrorpool.lexicon import classify_expression_style, detect_affect, extract_keywords
from mirrorpool.patterns import discover_patterns
from mirrorpool.ripples import trace_ripples
from mirrorpool.similarity import combined_score, keyword_overlap, similarity
from mirrorpool.sqlite_store import SQLiteStore
from mirrorpool.synthesis import SynthesisTracker
from mirrorpool.themes import find_undercurrents
from mirrorpool.types import ECHO_LIMITS, RESONANCE_MULTIPLIERS, DepthLevel, Thought

logger = logging.getLogger("mirrorpool.engine")

EVENTS = ("thought-ingested", "synthesis-recorded", "state-transition")

STRONG_PATTERN_RESONANCE = 0.7
RECURRING_THEME_CONNECTIONS = 5
EVOLVING_CONCEPT_STAGE = 3
MIN_SYNTHESIS_SOURCES = 2


class Echo:
    """A prior thought that passed the echo thresholds for a new text."""

    __slots__ = ("thought", "similarity", "keyword_overlap", "score")

    def __init__(self, thought: Thought, similarity: float, keyword_overlap: float):
        self.thought = thought
        self.similarity = similarity
        self.keyword_overlap = keyword_overlap
        self.score = combined_score(similarity, keyword_overlap)

    @property
    def strength(self) -> float:
        return max(self.similarity, self.keyword_overlap)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "thoughtId": self.thought.id,
            "text": self.thought.text,
            "type": "reflection",
            "similarity": round(self.similarity, 4),
            "keywordOverlap": round(self.keyword_overlap, 4),
            "score": round(self.score, 4),
            "strength": round(self.strength, 4),
            "createdAt": self.thought.created_at.isoformat(),
        }


def calculate_resonance(echoes: List[Echo], level: DepthLevel) -> float:
    if not echoes:
        return 0.0
    mean_similarity = sum(e.similarity for e in echoes) / len(echoes)
    connection_bonus = min(0.1 * len(echoes), 0.5)
    return min((mean_similarity + connection_bonus) * RESONANCE_MULTIPLIERS[level], 1.0)


def generate_insights(resonance: float, connection_count: int, stage: Optional[int],
                      ancestor_count: int = 0) -> List[Dict[str, Any]]:
    insights = []
    if resonance > STRONG_PATTERN_RESONANCE:
        insights.append({
            "type": "strong_pattern",
            "message": "This thought resonates deeply with your reflection history",
            "confidence": round(resonance, 4),
        })
    if connection_count > RECURRING_THEME_CONNECTIONS:
        insights.append({
            "type": "recurring_theme",
            "message": "This appears to be a central theme in your reflections",
            "connections": connection_count,
        })
    if stage is not None and stage > EVOLVING_CONCEPT_STAGE:
        insights.append({
            "type": "evolving_concept",
            "message": "This concept has undergone significant evolution",
            "stages": stage,
        })
    if stage is not None and stage > 1:
        insights.append({
            "type": "growth",
            "message": f"This thought builds on {ancestor_count} earlier reflection(s)"
            if ancestor_count else "This thought builds on earlier reflections",
            "stage": stage,
        })
    return insights


class ReflectionEngine:
    """Composes the store, graph and analyzers behind one API."""

    def __init__(self, store: Optional[SQLiteStore] = None, config: Optional[EngineConfig] = None):
        self.store = store if store is not None else SQLiteStore()
        self.config = config if config is not None else EngineConfig.from_env()
        self.graph = ConnectionGraph(self.store)
        self.evolution = EvolutionTracker(self.store)
        self.synthesis = SynthesisTracker(self.store, self.graph)
        self._lock = threading.RLock()
        self._observers: Dict[str, List[Callable[[Dict[str, Any]], Any]]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable[[Dict[str, Any]], Any]) -> None:
        if event not in EVENTS:
            raise ValidationError(f"event must be one of: {', '.join(EVENTS)} (got {event!r})")
        self._observers[event].append(callback)

    def off(self, event: str, callback: Callable[[Dict[str, Any]], Any]) -> None:
        try:
            self._observers[event].remove(callback)
        except ValueError:
            pass

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        for callback in list(self._observers.get(event, ())):
            try:
                callback(payload)
            except Exception:
                logger.exception("%s observer %r failed", event, callback)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def find_echoes(self, text: str, keywords: List[str], level: DepthLevel,
                    before: Optional[int] = None) -> List[Echo]:
        """Prior thoughts in the candidate window that pass either echo threshold."""
        candidates = self.store.recent(self.config.candidate_window, before=before)
        echoes = []
        for candidate in candidates:
            sim = similarity(text, candidate.text)
            overlap = keyword_overlap(keywords, candidate.keywords)
            if sim > self.config.similarity_threshold or overlap > self.config.keyword_overlap_threshold:
                echoes.append(Echo(candidate, sim, overlap))
        # stable sort keeps most recent first among equal scores
        echoes.sort(key=lambda e: e.score, reverse=True)
        return echoes[:ECHO_LIMITS[level]]

    def ingest(
        self,
        text: str,
        depth_level="deep",
        track_evolution: bool = True,
        created_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Add a thought to the corpus; identical text returns the stored thought."""
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text must be a non-empty string")
        level = DepthLevel.parse(depth_level)

        with self._lock:
            existing = self.store.get_by_text(text)
            if existing is not None:
                return self._duplicate_result(existing)

            text = text.strip()
            keywords = extract_keywords(text)
            echoes = self.find_echoes(text, keywords, level)
            resonance = calculate_resonance(echoes, level)

            evolution = None
            moment = None
            with self.store.transaction():
                thought = self.store.create(
                    text,
                    depth_level=level,
                    keywords=keywords,
                    affect_tags=sorted(detect_affect(text)),
                    expression_style=classify_expression_style(text),
                    resonance=resonance,
                    created_at=created_at,
                    metadata=metadata,
                )
                for echo in echoes:
                    self.graph.connect(thought.id, echo.thought.id, "reflection", echo.strength)
                    self.graph.connect(echo.thought.id, thought.id, "influence", echo.strength)
                if track_evolution:
                    evolution = self.evolution.assign_stage(thought)
                if len(echoes) >= MIN_SYNTHESIS_SOURCES:
                    moment = self.synthesis.record_synthesis(
                        [e.thought.text for e in echoes],
                        thought.text,
                        source_ids=[e.thought.id for e in echoes],
                        result_id=thought.id,
                        created_at=thought.created_at,
                    )

            logger.debug("ingested %s with %d echoes", thought.id, len(echoes))
            result = self._result(thought, [e.to_dict() for e in echoes], evolution, duplicate=False)
            result["synthesis"] = moment.to_dict() if moment else None

        self._emit("thought-ingested", result)
        if moment is not None:
            self._emit("synthesis-recorded", moment.to_dict())
        return result

    def _duplicate_result(self, thought: Thought) -> Dict[str, Any]:
        connections = []
        neighbors = [c for c in self.graph.neighbors(thought.id) if c.type == "reflection"]
        targets = self.store.get_many([c.target_id for c in neighbors])
        for conn in neighbors:
            target = targets.get(conn.target_id)
            if target is not None:
                connections.append({
                    "thoughtId": target.id,
                    "text": target.text,
                    "type": conn.type,
                    "strength": round(conn.strength, 4),
                    "createdAt": target.created_at.isoformat(),
                })
        evolution = None
        if thought.stage_assigned:
            evolution = {"stage": thought.stage, "ancestors": [], "growthDetected": thought.stage > 1}
        result = self._result(thought, connections, evolution, duplicate=True)
        result["synthesis"] = None
        return result

    def _result(self, thought: Thought, connections: List[Dict[str, Any]],
                evolution: Optional[Dict[str, Any]], duplicate: bool) -> Dict[str, Any]:
        stage = evolution["stage"] if evolution else None
        ancestors = evolution["ancestors"] if evolution else []
        result = {
            "thoughtId": thought.id,
            "text": thought.text,
            "depthLevel": thought.depth_level.value,
            "createdAt": thought.created_at.isoformat(),
            "keywords": list(thought.keywords),
            "affectTags": list(thought.affect_tags),
            "expressionStyle": thought.expression_style,
            "resonance": round(thought.resonance, 4),
            "connections": connections,
            "stage": stage,
            "growthDetected": bool(evolution and evolution["growthDetected"]),
            "ancestors": ancestors,
            "insights": generate_insights(thought.resonance, len(connections), stage, len(ancestors)),
            "questions": depth_analyzer.deeper_questions(thought.text, thought.depth_level),
            "duplicate": duplicate,
        }
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_thought(self, thought_id: str) -> Thought:
        thought = self.store.get_by_id(thought_id)
        if thought is None:
            raise NotFoundError(f"Thought not found: {thought_id}")
        return thought

    def find_undercurrents(self, timeframe: str = "week", min_depth: float = 0.5,
                           now: Optional[datetime] = None) -> Dict[str, Any]:
        if not 0.0 <= min_depth <= 1.0:
            raise ValidationError(f"min_depth must be within [0, 1] (got {min_depth})")
        return find_undercurrents(self.store, timeframe=timeframe, min_depth=min_depth, now=now)

    def trace_evolution(self, concept: str, show_branches: bool = True) -> Dict[str, Any]:
        return self.evolution.trace_evolution(concept, show_branches=show_branches)

    def discover_patterns(self, types: Optional[Iterable[str]] = None, threshold: float = 0.3) -> Dict[str, Any]:
        return discover_patterns(self.store, types=types, threshold=threshold)

    def trace_ripples(self, origin_text: str, max_distance: int = 3) -> Dict[str, Any]:
        if not isinstance(origin_text, str) or not origin_text.strip():
            raise ValidationError("origin text must be a non-empty string")
        return trace_ripples(self.store, self.graph, origin_text, max_distance=max_distance)

    def find_synthesis_moments(self, min_sources: int = 2, include_context: bool = True) -> Dict[str, Any]:
        if min_sources < MIN_SYNTHESIS_SOURCES:
            raise ValidationError(f"min_sources must be at least {MIN_SYNTHESIS_SOURCES} (got {min_sources})")
        return self.synthesis.find_synthesis_moments(min_sources=min_sources, include_context=include_context)

    def resonance_between(self, text_a: str, text_b: str) -> float:
        return self.synthesis.resonance_between(text_a, text_b)

    # ------------------------------------------------------------------
    # Synthesis and state tracking
    # ------------------------------------------------------------------

    def record_synthesis(self, sources: List[str], result: str) -> Dict[str, Any]:
        """Record an explicit merge of sources; texts already in the corpus are linked by id."""
        with self._lock:
            source_ids = []
            for source in sources or ():
                known = self.store.get_by_text(source) if isinstance(source, str) else None
                if known is not None:
                    source_ids.append(known.id)
            known_result = self.store.get_by_text(result) if isinstance(result, str) else None
            with self.store.transaction():
                moment = self.synthesis.record_synthesis(
                    sources,
                    result,
                    source_ids=source_ids,
                    result_id=known_result.id if known_result else None,
                )
        payload = moment.to_dict()
        self._emit("synthesis-recorded", payload)
        return payload

    def track_state(self, awareness: float = 0.0, coherence: float = 0.0, depth: float = 0.0,
                    integration: float = 0.0, snapshot: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with self._lock:
            state, transition = self.synthesis.track_state(awareness, coherence, depth, integration, snapshot)
        if transition is not None:
            self._emit("state-transition", transition)
        return {"state": state.to_dict(), "transition": transition}

    # ------------------------------------------------------------------
    # Depth
    # ------------------------------------------------------------------

    def depth_diving(self, thought: str, questions_per_level: int = 3, max_depth: int = 5) -> Dict[str, Any]:
        return depth_analyzer.diving_session(thought, questions_per_level=questions_per_level, max_depth=max_depth)

    def clarity_emergence(self, thought: str, method: str = "questions") -> Dict[str, Any]:
        return depth_analyzer.emergence_clarity(thought, method=method)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        return {
            "thoughtCount": self.store.thought_count(),
            "connectionCount": self.graph.edge_count(),
            "connectionTypes": self.graph.type_counts(),
            "depthDistribution": self.store.depth_distribution(),
            "synthesisCount": self.synthesis.moment_count(),
            "config": self.config.to_dict(),
            "dbPath": str(self.store.db_path),
        }

    def export_corpus(self, filepath) -> Dict[str, Any]:
        return self.store.export_to_file(Path(filepath))

    def import_corpus(self, filepath) -> Dict[str, Any]:
        """Re-ingest an export in order so edges and stages are rebuilt."""
        return self.store.import_from_file(Path(filepath), ingest=self.ingest)

    def close(self) -> None:
        self.store.close()
