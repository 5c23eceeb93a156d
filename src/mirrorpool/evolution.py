"""
MirrorPool Evolution Tracker -- write-once stages along concept chains.

A thought's stage is one more than the highest stage among its ancestors: for
each of its keywords, the prior thought containing that keyword with the
highest stage (most recent on ties). Stages are persisted once at ingestion
and never revised.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from mirrorpool.lexicon import contains_concept
from mirrorpool.similarity import classify_transformation, similarity
from mirrorpool.sqlite_store import SQLiteStore
from mirrorpool.types import Thought

logger = logging.getLogger("mirrorpool.evolution")


class EvolutionTracker:
    def __init__(self, store: SQLiteStore):
        self.store = store

    def _best_ancestor(self, keyword: str, before_seq: int) -> Optional[Thought]:
        candidates = self.store.query_by_keyword(keyword, before=before_seq)
        if not candidates:
            return None
        # candidates arrive most recent first, so max() keeps the most recent on stage ties
        return max(candidates, key=lambda t: (t.stage, t.seq))

    def stage_of(self, thought: Thought) -> Tuple[int, List[Thought]]:
        """Compute (stage, ancestors) without persisting anything."""
        ancestors: List[Thought] = []
        seen = set()
        for keyword in thought.keywords:
            best = self._best_ancestor(keyword, thought.seq)
            if best is not None and best.id not in seen:
                seen.add(best.id)
                ancestors.append(best)
        stage = 1 + max((a.stage for a in ancestors), default=0)
        return stage, ancestors

    def assign_stage(self, thought: Thought) -> Dict[str, Any]:
        """Compute and persist the stage. A thought can only be staged once."""
        stage, ancestors = self.stage_of(thought)
        self.store.update_stage(thought.id, stage)
        thought.stage = stage
        thought.stage_assigned = True
        logger.debug("stage %d assigned to %s (%d ancestors)", stage, thought.id, len(ancestors))
        return {
            "stage": stage,
            "ancestors": [a.id for a in ancestors],
            "growthDetected": stage > 1,
        }

    def trace_evolution(self, concept: str, show_branches: bool = True) -> Dict[str, Any]:
        """Chronological history of a concept across the corpus.

        An unknown concept yields an empty, well-formed result.
        """
        concept = (concept or "").strip()
        matches: List[Thought] = []
        if concept:
            words = concept.lower().split()
            # narrow by the first word in SQL, then apply the full concept rule
            for t in reversed(self.store.query_by_keyword(words[0])):
                if contains_concept(t.text, concept):
                    matches.append(t)

        stages: Dict[int, List[Dict[str, Any]]] = {}
        timeline: List[Dict[str, Any]] = []
        transformations: List[Dict[str, Any]] = []
        previous: Optional[Thought] = None
        for t in matches:
            entry = {"thoughtId": t.id, "text": t.text, "timestamp": t.created_at.isoformat()}
            stages.setdefault(t.stage, []).append(entry)
            if previous is None:
                label = "origin"
            else:
                label = classify_transformation(previous.text, t.text)
                if label != "continuation":
                    transformations.append({
                        "fromId": previous.id,
                        "toId": t.id,
                        "type": label,
                        "similarity": round(similarity(previous.text, t.text), 4),
                    })
            timeline.append(dict(entry, stage=t.stage, transformation=label))
            previous = t

        return {
            "concept": concept,
            "found": bool(matches),
            "origin": timeline[0] if timeline else None,
            "stages": stages,
            "timeline": timeline,
            "transformations": transformations,
            "branches": self._branches(matches) if show_branches else None,
        }

    @staticmethod
    def _branches(matches: List[Thought]) -> List[Dict[str, Any]]:
        """Branch points: earlier thoughts that two or more later thoughts descend from."""
        children: Dict[str, List[str]] = {}
        for i, t in enumerate(matches[1:], start=1):
            parent = max(
                matches[:i],
                key=lambda p: (similarity(p.text, t.text), p.seq),
            )
            children.setdefault(parent.id, []).append(t.id)

        by_id = {t.id: t for t in matches}
        return [
            {"fromId": pid, "fromText": by_id[pid].text, "children": kids}
            for pid, kids in children.items()
            if len(kids) >= 2
        ]
