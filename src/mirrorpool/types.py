"""
MirrorPool Types -- records shared by the store, graph and analyzers.

Thoughts are referenced by id everywhere outside the store; connections hold
ids only, never thought objects.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from mirrorpool.errors import ValidationError


class DepthLevel(Enum):
    """Depth requested when a thought is ingested."""

    SURFACE = "surface"
    DEEP = "deep"
    ABYSS = "abyss"

    @classmethod
    def parse(cls, value) -> "DepthLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(level.value for level in cls)
            raise ValidationError(f"depth must be one of: {allowed} (got {value!r})") from None


# Weight of each depth level when themes aggregate member depth
DEPTH_WEIGHTS = {
    DepthLevel.SURFACE: 0.3,
    DepthLevel.DEEP: 0.7,
    DepthLevel.ABYSS: 1.0,
}

# Resonance multiplier applied at ingestion
RESONANCE_MULTIPLIERS = {
    DepthLevel.SURFACE: 0.5,
    DepthLevel.DEEP: 1.0,
    DepthLevel.ABYSS: 1.5,
}

# Maximum echoes kept per ingestion
ECHO_LIMITS = {
    DepthLevel.SURFACE: 3,
    DepthLevel.DEEP: 7,
    DepthLevel.ABYSS: 15,
}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


class Thought:
    """One ingested text record with derived metadata.

    Everything but ``stage`` is fixed at creation; ``stage`` is written once by
    the evolution tracker.
    """

    __slots__ = (
        "id",
        "seq",
        "text",
        "depth_level",
        "created_at",
        "keywords",
        "affect_tags",
        "expression_style",
        "resonance",
        "stage",
        "stage_assigned",
        "metadata",
        "_text_lower",
    )

    def __init__(
        self,
        id: str,
        text: str,
        depth_level: DepthLevel = DepthLevel.DEEP,
        created_at: Optional[datetime] = None,
        keywords: Optional[List[str]] = None,
        affect_tags: Optional[List[str]] = None,
        expression_style: str = "neutral",
        resonance: float = 0.0,
        stage: int = 1,
        stage_assigned: bool = False,
        seq: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.id = id
        self.seq = seq
        self.text = text
        self.depth_level = depth_level
        self.created_at = created_at or datetime.now(timezone.utc)
        self.keywords = list(keywords or [])
        self.affect_tags = sorted(set(affect_tags or ["neutral"]))
        self.expression_style = expression_style
        self.resonance = resonance
        self.stage = stage
        self.stage_assigned = stage_assigned
        self.metadata = metadata or {}
        self._text_lower = None

    @property
    def text_lower(self) -> str:
        if self._text_lower is None:
            self._text_lower = self.text.lower()
        return self._text_lower

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "depthLevel": self.depth_level.value,
            "createdAt": _iso(self.created_at),
            "keywords": list(self.keywords),
            "affectTags": list(self.affect_tags),
            "expressionStyle": self.expression_style,
            "resonance": round(self.resonance, 4),
            "stage": self.stage,
        }

    def __repr__(self) -> str:
        return f"Thought(id={self.id!r}, seq={self.seq}, stage={self.stage}, text={self.text[:40]!r})"


class Connection:
    """Directed edge ``source -> target`` owned by the connection graph."""

    __slots__ = ("source_id", "target_id", "type", "strength", "discovered_at")

    def __init__(
        self,
        source_id: str,
        target_id: str,
        type: str = "reflection",
        strength: float = 0.0,
        discovered_at: Optional[datetime] = None,
    ):
        self.source_id = source_id
        self.target_id = target_id
        self.type = type
        self.strength = strength
        self.discovered_at = discovered_at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "type": self.type,
            "strength": round(self.strength, 4),
            "discoveredAt": _iso(self.discovered_at),
        }

    def __repr__(self) -> str:
        return f"Connection({self.source_id!r} -[{self.type}:{self.strength:.2f}]-> {self.target_id!r})"


class Theme:
    """Aggregated keyword cluster with a composite depth score."""

    __slots__ = (
        "name",
        "occurrence_count",
        "total_depth",
        "strength_score",
        "depth",
        "member_thought_ids",
        "first_seen",
        "last_seen",
    )

    def __init__(
        self,
        name: str,
        occurrence_count: int,
        total_depth: float,
        strength_score: float,
        depth: float,
        member_thought_ids: List[str],
        first_seen: Optional[datetime] = None,
        last_seen: Optional[datetime] = None,
    ):
        self.name = name
        self.occurrence_count = occurrence_count
        self.total_depth = total_depth
        self.strength_score = strength_score
        self.depth = depth
        self.member_thought_ids = member_thought_ids
        self.first_seen = first_seen
        self.last_seen = last_seen

    @property
    def average_depth(self) -> float:
        if self.occurrence_count == 0:
            return 0.0
        return self.total_depth / self.occurrence_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "occurrenceCount": self.occurrence_count,
            "totalDepth": round(self.total_depth, 4),
            "averageDepth": round(self.average_depth, 4),
            "strengthScore": round(self.strength_score, 4),
            "depth": round(self.depth, 4),
            "memberThoughtIds": list(self.member_thought_ids),
            "firstSeen": _iso(self.first_seen),
            "lastSeen": _iso(self.last_seen),
        }

    def __repr__(self) -> str:
        return f"Theme(name={self.name!r}, count={self.occurrence_count}, depth={self.depth:.3f})"


class SynthesisMoment:
    """A recorded merge of two or more source thoughts into a newer one."""

    __slots__ = (
        "id",
        "created_at",
        "sources",
        "source_ids",
        "synthesis",
        "result_id",
        "emergence_score",
        "resonance",
    )

    def __init__(
        self,
        id: str,
        sources: List[str],
        synthesis: str,
        emergence_score: float,
        resonance: float,
        created_at: Optional[datetime] = None,
        source_ids: Optional[List[str]] = None,
        result_id: Optional[str] = None,
    ):
        self.id = id
        self.sources = list(sources)
        self.synthesis = synthesis
        self.emergence_score = emergence_score
        self.resonance = resonance
        self.created_at = created_at or datetime.now(timezone.utc)
        self.source_ids = list(source_ids or [])
        self.result_id = result_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.created_at),
            "sources": list(self.sources),
            "sourceIds": list(self.source_ids),
            "synthesis": self.synthesis,
            "resultId": self.result_id,
            "emergenceScore": round(self.emergence_score, 4),
            "resonance": round(self.resonance, 4),
        }


class ConsciousnessState:
    """Snapshot of self-reported awareness metrics."""

    METRICS = ("awareness", "coherence", "depth", "integration")

    __slots__ = ("id", "created_at", "awareness", "coherence", "depth", "integration", "snapshot")

    def __init__(
        self,
        id: str,
        awareness: float = 0.0,
        coherence: float = 0.0,
        depth: float = 0.0,
        integration: float = 0.0,
        snapshot: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.awareness = awareness
        self.coherence = coherence
        self.depth = depth
        self.integration = integration
        self.snapshot = snapshot or {}
        self.created_at = created_at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.created_at),
            "awareness": self.awareness,
            "coherence": self.coherence,
            "depth": self.depth,
            "integration": self.integration,
            "snapshot": dict(self.snapshot),
        }
