"""Tests for synthesis moments, the resonance field and consciousness states."""
import pytest

from mirrorpool.errors import ValidationError
from mirrorpool.graph import ConnectionGraph
from mirrorpool.synthesis import (
    SynthesisTracker,
    catalysts,
    coherence,
    emergence_score,
    emergent_qualities,
    novelty,
    source_resonance,
)
from mirrorpool.types import ConsciousnessState


@pytest.fixture
def graph(store):
    return ConnectionGraph(store)


@pytest.fixture
def tracker(store, graph):
    return SynthesisTracker(store, graph)


class TestScoring:
    def test_novelty(self):
        assert novelty(["a b"], "a c") == pytest.approx(0.5)
        assert novelty(["a b"], "") == 0.0

    def test_coherence(self):
        assert coherence("One sentence only") == 1.0
        assert coherence("I fell. Therefore I rose.") == pytest.approx(0.7)

    def test_emergence_bounded(self):
        score = emergence_score(["river runs", "mountain stands"], "where the river meets the mountain, stillness")
        assert 0.0 <= score <= 1.0
        assert emergence_score(["same words", "same words"], "same words") == 0.0

    def test_source_resonance(self):
        assert source_resonance(["a b c", "a b d"]) == pytest.approx(0.5)
        assert source_resonance(["a b c", "x y z", "a b c"]) == pytest.approx(1.0 / 3)

    def test_catalysts(self):
        found = catalysts(["What if I could fly?", "A paradox of choice", "Plain text"])
        assert [c["type"] for c in found] == ["question", "imagination", "paradox"]

    def test_emergent_qualities(self):
        assert emergent_qualities(["chaos reigns", "noise"], "chaos becomes clarity") == ["clarity"]


class TestRecordSynthesis:
    def test_record(self, tracker):
        moment = tracker.record_synthesis(["a b c", "a b d"], "a b c d e")
        assert moment.id.startswith("syn-")
        assert moment.resonance == pytest.approx(0.5)
        assert tracker.moment_count() == 1
        assert tracker.moments()[0].id == moment.id

    @pytest.mark.parametrize("sources", [[], ["only one"], ["fine", "  "], "not a list"])
    def test_bad_sources(self, tracker, sources):
        with pytest.raises(ValidationError):
            tracker.record_synthesis(sources, "result")
        assert tracker.moment_count() == 0

    def test_empty_result(self, tracker):
        with pytest.raises(ValidationError):
            tracker.record_synthesis(["one", "two"], "   ")

    def test_resonance_field_is_cumulative_and_symmetric(self, tracker):
        tracker.record_synthesis(["a b c", "a b d"], "merged")
        tracker.record_synthesis(["a b c", "a b d"], "merged again")
        assert tracker.resonance_between("a b c", "a b d") == pytest.approx(1.0)
        assert tracker.resonance_between("a b d", "a b c") == pytest.approx(1.0)
        assert tracker.resonance_between("a b c", "unrelated") == 0.0


class TestFindSynthesisMoments:
    @pytest.fixture
    def scene(self, store, graph, tracker, clock):
        s1 = store.create("the river runs", keywords=["river", "runs"], created_at=clock(0))
        s2 = store.create("the mountain stands", keywords=["mountain", "stands"], created_at=clock(1))
        bystander = store.create("what if it rains?", keywords=["rains"], created_at=clock(1.5))
        result = store.create("river and mountain meet", keywords=["river", "mountain", "meet"], created_at=clock(2))
        follow = store.create("the river again", keywords=["river", "again"], created_at=clock(5))
        second = store.create("second ring", keywords=["second", "ring"], created_at=clock(6))
        third = store.create("third ring", keywords=["third", "ring"], created_at=clock(7))
        graph.connect(follow.id, second.id, "influence", 0.5)
        graph.connect(second.id, third.id, "influence", 0.5)
        moment = tracker.record_synthesis(
            [s1.text, s2.text],
            result.text,
            source_ids=[s1.id, s2.id],
            result_id=result.id,
            created_at=clock(2),
        )
        return moment, bystander, follow, second, third

    def test_moments_listed(self, tracker, scene):
        moment = scene[0]
        found = tracker.find_synthesis_moments()
        assert found["count"] == 1
        assert found["moments"][0]["id"] == moment.id
        assert found["moments"][0]["resultId"] == moment.result_id

    def test_context(self, tracker, scene):
        _, bystander, _, _, _ = scene
        context = tracker.find_synthesis_moments()["moments"][0]["context"]
        assert [t["id"] for t in context["precedingThoughts"]] == [bystander.id]
        assert context["environmentalFactors"] == [{"type": "time", "value": "morning", "influence": "fresh"}]

    def test_ripple_effects(self, tracker, scene):
        _, _, follow, second, third = scene
        ripples = tracker.find_synthesis_moments()["moments"][0]["rippleEffects"]
        assert [r["id"] for r in ripples["immediate"]] == [follow.id]
        assert [r["id"] for r in ripples["secondary"]] == [second.id]
        assert [r["id"] for r in ripples["tertiary"]] == [third.id]

    def test_without_context(self, tracker, scene):
        entry = tracker.find_synthesis_moments(include_context=False)["moments"][0]
        assert "context" not in entry
        assert "rippleEffects" not in entry

    def test_min_sources_filter(self, tracker, scene):
        assert tracker.find_synthesis_moments(min_sources=3)["count"] == 0
        tracker.record_synthesis(["one thing", "two things", "three things"], "all things")
        assert tracker.find_synthesis_moments(min_sources=3)["count"] == 1

    def test_patterns(self, tracker, scene):
        patterns = tracker.find_synthesis_moments()["patterns"]
        kinds = [p["type"] for p in patterns]
        assert "temporal" in kinds
        assert "source-combination" in kinds
        combo = next(p for p in patterns if p["type"] == "source-combination")
        assert combo["patterns"][0]["counts"] == [2]

    def test_empty(self, tracker):
        assert tracker.find_synthesis_moments() == {
            "count": 0,
            "moments": [],
            "patterns": [],
            "emergentProperties": [],
        }


class TestConsciousnessStates:
    def test_first_state_has_no_transition(self, tracker):
        state, transition = tracker.track_state(awareness=0.5)
        assert isinstance(state, ConsciousnessState)
        assert transition is None
        assert tracker.latest_state().id == state.id

    @pytest.mark.parametrize(
        "metrics, kind",
        [
            ({"awareness": 1.0, "coherence": 1.0, "depth": 0.5}, "leap"),
            ({"awareness": 1.0, "coherence": 0.5}, "shift"),
            ({"awareness": 0.6}, "drift"),
            ({"awareness": 0.2}, "stability"),
        ],
    )
    def test_transition_kinds(self, tracker, metrics, kind):
        tracker.track_state()
        _, transition = tracker.track_state(**metrics)
        assert transition["type"] == kind

    def test_transition_details(self, tracker):
        first, _ = tracker.track_state(awareness=0.2, depth=0.4)
        second, transition = tracker.track_state(awareness=0.7, depth=0.1)
        assert transition["from"] == first.id
        assert transition["to"] == second.id
        assert transition["delta"]["awareness"] == pytest.approx(0.5)
        assert transition["delta"]["depth"] == pytest.approx(-0.3)
        assert transition["significance"] == pytest.approx(0.2)

    def test_snapshot_defaults_to_metrics(self, tracker):
        state, _ = tracker.track_state(awareness=0.3)
        assert state.snapshot["awareness"] == 0.3

    def test_non_numeric_rejected(self, tracker):
        with pytest.raises(ValidationError):
            tracker.track_state(awareness="very")
