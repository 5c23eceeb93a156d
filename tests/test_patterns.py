"""Tests for deterministic pattern discovery."""
import pytest

from mirrorpool.errors import ValidationError
from mirrorpool.patterns import discover_patterns, time_bucket, trajectory


@pytest.fixture
def corpus(store, clock):
    """Fear early, joy late; everything questioning, all in the morning (UTC)."""
    rows = [
        ("Am I anxious about change?", ["anxious", "change"], ["fear"]),
        ("Still anxious about change?", ["still", "anxious", "change"], ["fear"]),
        ("Happy with change?", ["happy", "change"], ["joy"]),
        ("Happy again with change?", ["happy", "again", "change"], ["joy"]),
    ]
    return [
        store.create(text, keywords=kw, affect_tags=tags, expression_style="questioning", created_at=clock(i))
        for i, (text, kw, tags) in enumerate(rows)
    ]


class TestTimeBuckets:
    @pytest.mark.parametrize(
        "hour, bucket",
        [(6, "morning"), (11, "morning"), (12, "afternoon"), (17, "evening"),
         (21, "evening"), (22, "late-night"), (0, "late-night"), (5, "late-night")],
    )
    def test_bucket(self, hour, bucket):
        assert time_bucket(hour) == bucket


class TestTrajectory:
    def test_trajectory(self, corpus):
        assert trajectory(corpus, lambda t: "fear" in t.affect_tags) == "descending"
        assert trajectory(corpus, lambda t: "joy" in t.affect_tags) == "ascending"
        assert trajectory(corpus, lambda t: "change" in t.keywords) == "stable"
        assert trajectory(corpus[:1], lambda t: True) == "stable"


class TestDiscoverPatterns:
    def test_default_types(self, store, corpus):
        result = discover_patterns(store)
        assert set(result["patterns"]) == {"emotional", "conceptual"}
        assert result["thoughtCount"] == 4
        assert result["threshold"] == 0.3

    def test_emotional_shares(self, store, corpus):
        emotional = discover_patterns(store, types=["emotional"])["patterns"]["emotional"]
        assert [(p["name"], p["strength"], p["trajectory"]) for p in emotional] == [
            ("fear", 0.5, "descending"),
            ("joy", 0.5, "ascending"),
        ]
        assert emotional[0]["occurrences"] == 2
        assert emotional[0]["depth"] == 0.7

    def test_emerging_and_fading(self, store, corpus):
        result = discover_patterns(store, types=["emotional"])
        assert [p["name"] for p in result["emergingPatterns"]] == ["joy"]
        assert [p["name"] for p in result["fadingPatterns"]] == ["fear"]

    def test_conceptual_related_concepts(self, store, corpus):
        conceptual = discover_patterns(store, types="conceptual")["patterns"]["conceptual"]
        change = next(p for p in conceptual if p["name"] == "change")
        assert change["occurrences"] == 4
        assert change["relatedConcepts"][:3] == ["transformation", "growth", "transition"]
        assert "anxious" in change["relatedConcepts"]
        assert "happy" in change["relatedConcepts"]

    def test_behavioral_and_temporal(self, store, corpus):
        result = discover_patterns(store, types=["behavioral", "temporal"])
        assert [(p["name"], p["strength"]) for p in result["patterns"]["behavioral"]] == [("questioning", 1.0)]
        assert [(p["name"], p["strength"]) for p in result["patterns"]["temporal"]] == [("morning", 1.0)]

    def test_threshold_filters(self, store, corpus):
        result = discover_patterns(store, types=["emotional"], threshold=0.5)
        assert result["patterns"]["emotional"] == []

    def test_meta_patterns(self, store, corpus):
        meta = discover_patterns(store, types=["emotional", "behavioral", "temporal"])["metaPatterns"]
        kinds = [m["type"] for m in meta]
        assert kinds == ["dominant_pattern", "emerging_pattern", "pattern_diversity"]
        assert meta[2]["dimensions"] == 3

    def test_deterministic(self, store, corpus):
        assert discover_patterns(store) == discover_patterns(store)

    def test_empty_corpus(self, store):
        result = discover_patterns(store, types=["emotional", "temporal"])
        assert result["patterns"] == {"emotional": [], "temporal": []}
        assert result["metaPatterns"] == []

    def test_unknown_type(self, store):
        with pytest.raises(ValidationError):
            discover_patterns(store, types=["astrological"])

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_bad_threshold(self, store, threshold):
        with pytest.raises(ValidationError):
            discover_patterns(store, threshold=threshold)
