"""
MirrorPool Similarity -- the single set-overlap primitive.

Full-text similarity, keyword overlap, synthesis resonance and evolution
transformations are all Jaccard indexes over different token sets.
"""

from typing import Iterable

from mirrorpool.lexicon import token_set

ECHO_SIMILARITY_WEIGHT = 0.6
ECHO_OVERLAP_WEIGHT = 0.4


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """|a ∩ b| / |a ∪ b|, 0.0 when both are empty."""
    set_a = a if isinstance(a, (set, frozenset)) else set(a)
    set_b = b if isinstance(b, (set, frozenset)) else set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def similarity(text_a: str, text_b: str) -> float:
    """Token-set Jaccard over whitespace-split, lower-cased tokens."""
    return jaccard(token_set(text_a), token_set(text_b))


def keyword_overlap(keywords_a: Iterable[str], keywords_b: Iterable[str]) -> float:
    return jaccard(set(keywords_a), set(keywords_b))


def combined_score(sim: float, overlap: float) -> float:
    """Echo ranking score."""
    return sim * ECHO_SIMILARITY_WEIGHT + overlap * ECHO_OVERLAP_WEIGHT


def classify_transformation(previous_text: str, current_text: str) -> str:
    """Label how a concept moved between two consecutive thoughts."""
    sim = similarity(previous_text, current_text)
    if sim > 0.8:
        return "continuation"
    if sim > 0.5:
        return "evolution"
    if sim > 0.3:
        return "divergence"
    return "leap"
