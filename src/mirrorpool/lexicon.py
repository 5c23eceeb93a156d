"""
MirrorPool Lexicon -- tokenization, keywords, affect and expression style.

Purely lexical: fixed stop words, fixed trigger tables, first-match rules.
Every higher-level component goes through these functions so thresholds and
token rules cannot drift between analyzers.
"""

import hashlib
import re
from typing import List, Set

MAX_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 4  # tokens of length <= 3 are dropped

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "is", "it", "be", "as", "by", "so", "if", "my", "me", "we", "us",
    "that", "this", "these", "those", "with", "from", "have", "has", "had",
    "been", "were", "was", "are", "they", "them", "their", "there", "then",
    "than", "what", "when", "where", "which", "while", "would", "could",
    "should", "into", "just", "also", "some", "very", "much", "more", "most",
    "such", "only", "over", "your", "yours", "mine", "ours", "does", "doing",
    "being", "will", "shall", "here", "each", "other", "itself", "myself",
})

# Label -> trigger substrings (matched case-insensitively against the text)
AFFECT_TRIGGERS = {
    "joy": ("happy", "joy", "delight", "glad", "excited", "cheerful", "elated"),
    "sadness": (" sad", "grief", "sorrow", "lonely", "depress", "tears", "heartbroken", "crying"),
    "anger": ("angry", "anger", "furious", " rage", "frustrat", "resent", "irritat"),
    "fear": ("afraid", "anxious", "anxiety", "fear", "scared", "worried", "worry", "nervous", "dread", "panic"),
    "curiosity": ("curious", "wonder", "why ", "what if", "intrigu", "fascinat"),
    "love": ("love", "adore", "cherish", "affection"),
    "gratitude": ("grateful", "thankful", "gratitude", "appreciat"),
    "melancholy": ("melanchol", "nostalg", "wistful", "longing"),
    "wonder": ("in awe", "awestruck", "marvel", "amazed", "wondrous"),
}

EXPRESSION_STYLES = ("questioning", "affirming", "negating", "exploring", "concluding", "neutral")

_AFFIRMING_RE = re.compile(r"\bi (am|will|can|choose|know|believe|accept|trust)\b")
_NEGATING_RE = re.compile(
    r"\b(not|never|no|nothing|nobody|nowhere|cannot|can't|don't|won't|isn't|aren't|doesn't|didn't)\b"
)
_EXPLORING_RE = re.compile(r"\b(maybe|perhaps|might|possibly|wonder|wondering|i guess|seems|could be)\b")
_CONCLUDING_RE = re.compile(
    r"\b(therefore|thus|hence|finally|ultimately|in the end|i realize|i realise|i understand|i see now)\b"
)

_PUNCT_STRIP = "\"'`.,;:!?()[]{}<>*_~-—–“”‘’"


def tokenize(text: str) -> List[str]:
    """Lower-case and split on whitespace."""
    return text.lower().split()


def token_set(text: str) -> Set[str]:
    return set(tokenize(text))


def _is_numeric(word: str) -> bool:
    # "1,000" and "3.14" count as numbers
    return word.replace(",", "").replace(".", "").isdigit()


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Content words in first-occurrence order, capped at ``limit``.

    Surrounding punctuation is stripped so "change?" and "change" agree.
    """
    keywords: List[str] = []
    seen: Set[str] = set()
    for raw in tokenize(text):
        word = raw.strip(_PUNCT_STRIP)
        if len(word) < MIN_KEYWORD_LENGTH or word in STOP_WORDS or _is_numeric(word):
            continue
        if word in seen:
            continue
        seen.add(word)
        keywords.append(word)
        if len(keywords) >= limit:
            break
    return keywords


def detect_affect(text: str) -> Set[str]:
    """Affect labels whose triggers appear in the text, or {"neutral"}."""
    lowered = f" {text.lower()} "
    labels = {
        label
        for label, triggers in AFFECT_TRIGGERS.items()
        if any(trigger in lowered for trigger in triggers)
    }
    return labels or {"neutral"}


def classify_expression_style(text: str) -> str:
    """Coarse behaviour tag; the first matching rule wins."""
    lowered = text.lower()
    if "?" in lowered:
        return "questioning"
    if _AFFIRMING_RE.search(lowered):
        return "affirming"
    if _NEGATING_RE.search(lowered):
        return "negating"
    if _EXPLORING_RE.search(lowered):
        return "exploring"
    if _CONCLUDING_RE.search(lowered):
        return "concluding"
    return "neutral"


def normalize_text(text: str) -> str:
    return text.strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


def thought_id(text: str) -> str:
    """Stable content-derived identifier."""
    return f"th-{content_hash(text)[:16]}"


def contains_concept(text: str, concept: str) -> bool:
    """Substring match, or every word of a multi-word concept present."""
    normalized_text = text.lower()
    normalized_concept = concept.lower().strip()
    if not normalized_concept:
        return False
    if normalized_concept in normalized_text:
        return True
    return all(word in normalized_text for word in normalized_concept.split())
