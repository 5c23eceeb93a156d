"""Tests for mirrorpool.lexicon and mirrorpool.similarity."""
import pytest

from mirrorpool.lexicon import (
    MAX_KEYWORDS,
    classify_expression_style,
    contains_concept,
    detect_affect,
    extract_keywords,
    thought_id,
    tokenize,
)
from mirrorpool.similarity import (
    classify_transformation,
    combined_score,
    jaccard,
    keyword_overlap,
    similarity,
)


class TestKeywords:
    def test_anxious_about_change(self):
        assert extract_keywords("I feel anxious about change") == ["feel", "anxious", "about", "change"]

    def test_short_and_stop_words_dropped(self):
        assert extract_keywords("I am in the way of it") == []

    def test_first_occurrence_order_and_dedup(self):
        assert extract_keywords("growth needs growth and patience") == ["growth", "needs", "patience"]

    def test_capped(self):
        text = "alpha bravo charlie delta echoes foxtrot golfs hotel"
        keywords = extract_keywords(text)
        assert len(keywords) == MAX_KEYWORDS
        assert keywords[0] == "alpha"

    def test_punctuation_stripped(self):
        assert extract_keywords("Why change?") == ["change"]

    def test_numbers_dropped(self):
        assert extract_keywords("spent 1,000 days over 3.14 hours in 2026") == ["spent", "days", "hours"]

    def test_tokenize_lowercases(self):
        assert tokenize("I Want  TO grow") == ["i", "want", "to", "grow"]


class TestAffect:
    def test_fear(self):
        assert "fear" in detect_affect("I feel anxious about change")

    def test_multiple_labels(self):
        tags = detect_affect("I am happy but also worried")
        assert {"joy", "fear"} <= tags

    def test_neutral_when_nothing_matches(self):
        assert detect_affect("The table is brown") == {"neutral"}


class TestExpressionStyle:
    @pytest.mark.parametrize(
        "text, style",
        [
            ("Why do I keep doing this?", "questioning"),
            ("I choose to stay", "affirming"),
            ("Nothing seems to help", "negating"),
            ("Maybe I should rest", "exploring"),
            ("Ultimately it was worth it", "concluding"),
            ("The river runs east", "neutral"),
        ],
    )
    def test_first_matching_rule(self, text, style):
        assert classify_expression_style(text) == style

    def test_question_mark_wins(self):
        assert classify_expression_style("I am not sure, am I?") == "questioning"


class TestIdentity:
    def test_thought_id_is_stable(self):
        assert thought_id("I want to grow") == thought_id("  I want to grow  ")
        assert thought_id("I want to grow").startswith("th-")

    def test_thought_id_differs_by_text(self):
        assert thought_id("I want to grow") != thought_id("I want to change")

    def test_contains_concept(self):
        assert contains_concept("Learning to let go of control", "let go")
        assert contains_concept("Go and let it be", "let go")
        assert not contains_concept("Holding on", "let go")
        assert not contains_concept("anything", "   ")


class TestSimilarity:
    def test_reflexive(self):
        assert similarity("I want to grow", "I want to grow") == 1.0

    def test_symmetric(self):
        a, b = "I want to grow", "I want to change"
        assert similarity(a, b) == similarity(b, a)

    def test_grow_vs_change(self):
        # {i, want, to} shared out of {i, want, to, grow, change}
        assert similarity("I want to grow", "I want to change") == pytest.approx(0.6)

    def test_empty_sets(self):
        assert jaccard([], []) == 0.0
        assert keyword_overlap([], ["grow"]) == 0.0

    def test_combined_score_weights(self):
        assert combined_score(1.0, 0.0) == pytest.approx(0.6)
        assert combined_score(0.0, 1.0) == pytest.approx(0.4)

    @pytest.mark.parametrize(
        "previous, current, label",
        [
            ("a b c d e f g h i j", "a b c d e f g h i j", "continuation"),
            ("a b c d e f", "a b c d e g", "evolution"),
            ("a b c d", "a b e f", "divergence"),
            ("a b c", "x y z", "leap"),
        ],
    )
    def test_transformation_labels(self, previous, current, label):
        assert classify_transformation(previous, current) == label
