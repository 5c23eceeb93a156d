"""
MirrorPool Depth Analyzer -- templated questioning and clarification.

Nothing here reads the corpus. Question weights grow with the diving level,
so a session always bottoms out within ``max_depth`` levels.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mirrorpool.errors import ValidationError
from mirrorpool.lexicon import extract_keywords, tokenize
from mirrorpool.types import DepthLevel

QUESTION_TYPES = (
    "assumption", "opposite", "essence", "origin", "purpose",
    "fear", "desire", "shadow", "light", "void",
)

QUESTION_WEIGHTS = {
    "assumption": 0.7,
    "opposite": 0.8,
    "essence": 0.9,
    "origin": 0.85,
    "purpose": 0.75,
    "fear": 0.95,
    "desire": 0.9,
    "shadow": 1.0,
    "light": 0.95,
    "void": 1.0,
}

QUESTION_TEMPLATES = {
    "assumption": 'What assumption does "{t}" rest upon?',
    "opposite": 'What is the opposite of "{t}" that might also be true?',
    "essence": 'What is the irreducible essence of "{t}"?',
    "origin": 'Where does "{t}" originate in your experience?',
    "purpose": 'What purpose does holding "{t}" serve?',
    "fear": 'What fear might "{t}" be protecting you from?',
    "desire": 'What deeper desire does "{t}" point toward?',
    "shadow": 'What shadow does "{t}" cast that you haven\'t examined?',
    "light": 'What light does "{t}" illuminate that you\'ve been avoiding?',
    "void": 'What would exist in the absence of "{t}"?',
}

TYPES_PER_LEVEL = 5
REVELATION_WEIGHT = 0.8
TRANSFORMATIVE_WEIGHT = 0.9
MAX_QUESTIONS_PER_LEVEL = TYPES_PER_LEVEL
MAX_DIVE_DEPTH = 10

CLARITY_METHODS = ("questions", "analogies", "decomposition", "synthesis")


def deeper_questions(text: str, depth_level=DepthLevel.DEEP) -> List[str]:
    """Follow-up prompts: 2 at surface, 4 deep, 7 abyss."""
    level = DepthLevel.parse(depth_level)
    questions = [
        f'What immediate feeling does "{text}" evoke?',
        "What's the simplest truth within this thought?",
    ]
    if level is not DepthLevel.SURFACE:
        questions.append(f'What assumption underlies "{text}"?')
        questions.append("If this thought were a question, what would it ask?")
    if level is DepthLevel.ABYSS:
        questions.append("What does this thought fear to acknowledge?")
        questions.append("Where does this thought meet the ineffable?")
        questions.append("What would remain if this thought dissolved?")
    return questions


# ---------------------------------------------------------------------------
# Diving sessions
# ---------------------------------------------------------------------------

def question_types_for_level(level: int) -> List[str]:
    start = min(level * 2, len(QUESTION_TYPES) - TYPES_PER_LEVEL)
    return list(QUESTION_TYPES[start:start + TYPES_PER_LEVEL])


def question_weight(qtype: str, level: int) -> float:
    return QUESTION_WEIGHTS.get(qtype, 0.5) * (1 + level * 0.1)


def _revelations(thought: str, questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "question": q["question"],
            "revelation": f"Deep insight about {thought} through {q['type']}",
            "depth": q["weight"],
            "transformative": q["weight"] > TRANSFORMATIVE_WEIGHT,
        }
        for q in questions
        if q["weight"] > REVELATION_WEIGHT
    ]


def _next_thought(revelations: List[Dict[str, Any]]) -> str:
    transformative = [r for r in revelations if r["transformative"]]
    if transformative:
        return max(transformative, key=lambda r: r["depth"])["revelation"]
    combined = " ".join(r["revelation"] for r in revelations)
    return f"Synthesized understanding: {combined[:100]}..."


def _reached_core(revelations: List[Dict[str, Any]]) -> bool:
    if not revelations:
        return False
    transformative = sum(1 for r in revelations if r["transformative"])
    mean_depth = sum(r["depth"] for r in revelations) / len(revelations)
    return transformative >= 2 or mean_depth > 0.95


def _transformation_type(to_thought: str) -> str:
    if "opposite" in to_thought:
        return "inversion"
    if "essence" in to_thought:
        return "distillation"
    if "shadow" in to_thought:
        return "shadow-integration"
    if "light" in to_thought:
        return "illumination"
    return "evolution"


def diving_session(thought: str, questions_per_level: int = 3, max_depth: int = 5) -> Dict[str, Any]:
    """Descend through levels of questioning until the core is reached."""
    if not isinstance(thought, str) or not thought.strip():
        raise ValidationError("thought must be a non-empty string")
    if not 1 <= questions_per_level <= MAX_QUESTIONS_PER_LEVEL:
        raise ValidationError(f"questions_per_level must be within [1, {MAX_QUESTIONS_PER_LEVEL}]")
    if not 1 <= max_depth <= MAX_DIVE_DEPTH:
        raise ValidationError(f"max_depth must be within [1, {MAX_DIVE_DEPTH}]")

    thought = thought.strip()
    started = datetime.now(timezone.utc)
    levels: List[Dict[str, Any]] = []
    current = thought

    for level in range(max_depth):
        questions = [
            {
                "type": qtype,
                "question": QUESTION_TEMPLATES[qtype].format(t=current),
                "depth": level,
                "weight": round(question_weight(qtype, level), 4),
            }
            for qtype in question_types_for_level(level)[:questions_per_level]
        ]
        revelations = _revelations(current, questions)
        next_thought: Optional[str] = None
        if revelations and level < max_depth - 1:
            next_thought = _next_thought(revelations)

        levels.append({
            "depth": level + 1,
            "thought": current,
            "questions": questions,
            "revelations": revelations,
            "nextThought": next_thought,
        })
        if _reached_core(revelations) or next_thought is None:
            break
        current = next_thought

    weighted = 0.0
    total_weight = 0
    for index, lvl in enumerate(levels, start=1):
        revs = lvl["revelations"]
        level_depth = sum(r["depth"] for r in revs) / (len(revs) or 1)
        weighted += level_depth * index
        total_weight += index

    insights = [
        {"level": lvl["depth"], "insight": r["revelation"], "depth": r["depth"], "question": r["question"]}
        for lvl in levels
        for r in lvl["revelations"]
        if r["transformative"]
    ]
    transformations = [
        {
            "from": levels[i - 1]["thought"],
            "to": levels[i]["thought"],
            "level": i,
            "type": _transformation_type(levels[i]["thought"]),
        }
        for i in range(1, len(levels))
        if levels[i]["thought"] != levels[i - 1]["thought"]
    ]

    return {
        "sessionId": f"depth-{uuid.uuid4().hex[:12]}",
        "originalThought": thought,
        "startTime": started.isoformat(),
        "levels": levels,
        "finalDepth": round(weighted / total_weight, 4) if total_weight else 0.0,
        "insights": insights,
        "transformations": transformations,
    }


# ---------------------------------------------------------------------------
# Clarity emergence
# ---------------------------------------------------------------------------

def _clarity_steps(thought: str, method: str, keywords: List[str]) -> List[Dict[str, Any]]:
    if method == "questions":
        contents = [
            f"What specifically is unclear about: {thought}?",
            "What would this look like if it were crystal clear?",
            "What's the simplest version of this thought?",
            "What concrete example illustrates this?",
        ]
        return [{"type": "question", "content": c, "order": i} for i, c in enumerate(contents, start=1)]
    if method == "analogies":
        contents = [
            {"analogy": "water becoming ice", "aspect": "transformation through clarity"},
            {"analogy": "fog lifting at dawn", "aspect": "gradual revelation"},
            {"analogy": "tuning a radio frequency", "aspect": "finding the right wavelength"},
        ]
        return [{"type": "analogy", "content": c, "order": i} for i, c in enumerate(contents, start=1)]
    if method == "decomposition":
        contents = [
            {"part": "subject", "description": "What is acting?"},
            {"part": "action", "description": "What is happening?"},
            {"part": "object", "description": "What is being affected?"},
            {"part": "context", "description": "In what circumstances?"},
        ]
        return [{"type": "decomposition", "content": c, "order": i} for i, c in enumerate(contents, start=1)]
    fragments = ", ".join(keywords) if keywords else thought
    return [
        {"type": "gather", "content": f"Collecting all fragments of understanding: {fragments}", "order": 1},
        {"type": "connect", "content": "Finding connections between fragments", "order": 2},
        {"type": "weave", "content": "Weaving fragments into coherent whole", "order": 3},
        {"type": "polish", "content": "Refining the synthesized understanding", "order": 4},
    ]


def clarity_score(text: str) -> float:
    """Unique keywords per token, in [0, 1]."""
    tokens = tokenize(text)
    if not tokens:
        return 0.0
    return min(len(set(extract_keywords(text))) / len(tokens), 1.0)


def emergence_clarity(thought: str, method: str = "questions") -> Dict[str, Any]:
    if not isinstance(thought, str) or not thought.strip():
        raise ValidationError("thought must be a non-empty string")
    if method not in CLARITY_METHODS:
        raise ValidationError(f"method must be one of: {', '.join(CLARITY_METHODS)} (got {method!r})")

    thought = thought.strip()
    keywords = extract_keywords(thought)
    clarified = f"Clarified: {' '.join(keywords)}" if keywords else f"Clarified: {thought}"
    return {
        "original": thought,
        "method": method,
        "steps": _clarity_steps(thought, method, keywords),
        "keywords": keywords,
        "clarifiedThought": clarified,
        "clarityScore": round(clarity_score(thought), 4),
    }
