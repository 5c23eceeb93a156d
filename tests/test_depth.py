"""Tests for deeper questions, diving sessions and clarity emergence."""
import pytest

from mirrorpool.depth import (
    deeper_questions,
    diving_session,
    emergence_clarity,
    question_types_for_level,
    question_weight,
)
from mirrorpool.errors import ValidationError


class TestDeeperQuestions:
    @pytest.mark.parametrize("level, count", [("surface", 2), ("deep", 4), ("abyss", 7)])
    def test_counts_by_depth(self, level, count):
        assert len(deeper_questions("I want to grow", level)) == count

    def test_text_is_quoted(self):
        assert '"I want to grow"' in deeper_questions("I want to grow", "surface")[0]


class TestQuestionTypes:
    def test_window_slides_and_stops(self):
        assert question_types_for_level(0) == ["assumption", "opposite", "essence", "origin", "purpose"]
        assert question_types_for_level(1)[0] == "essence"
        assert question_types_for_level(4) == ["fear", "desire", "shadow", "light", "void"]

    def test_weight_grows_with_level(self):
        assert question_weight("essence", 0) == pytest.approx(0.9)
        assert question_weight("essence", 1) == pytest.approx(0.99)
        assert question_weight("unknown", 0) == pytest.approx(0.5)


class TestDivingSession:
    def test_default_session_reaches_core_on_second_level(self):
        session = diving_session("I want to grow")
        assert session["originalThought"] == "I want to grow"
        assert [lvl["depth"] for lvl in session["levels"]] == [1, 2]
        first, second = session["levels"]
        assert len(first["questions"]) == 3
        assert [r["question"] for r in first["revelations"]] == [first["questions"][2]["question"]]
        assert first["nextThought"].startswith("Synthesized understanding:")
        assert second["thought"] == first["nextThought"]
        assert sum(1 for r in second["revelations"] if r["transformative"]) == 2

    def test_insights_are_transformative_revelations(self):
        session = diving_session("I want to grow")
        assert len(session["insights"]) == 2
        assert all(i["level"] == 2 for i in session["insights"])

    def test_transformations(self):
        session = diving_session("I want to grow")
        assert session["transformations"] == [{
            "from": "I want to grow",
            "to": session["levels"][1]["thought"],
            "level": 1,
            "type": "distillation",
        }]

    def test_single_level(self):
        session = diving_session("I want to grow", max_depth=1)
        assert len(session["levels"]) == 1
        assert session["levels"][0]["nextThought"] is None
        assert session["transformations"] == []

    def test_final_depth_bounded(self):
        session = diving_session("I want to grow", questions_per_level=5, max_depth=10)
        assert len(session["levels"]) <= 10
        assert 0.0 < session["finalDepth"] <= 2.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"thought": ""},
            {"thought": "ok", "questions_per_level": 0},
            {"thought": "ok", "questions_per_level": 6},
            {"thought": "ok", "max_depth": 0},
            {"thought": "ok", "max_depth": 11},
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ValidationError):
            diving_session(**kwargs)


class TestClarityEmergence:
    @pytest.mark.parametrize("method, steps", [
        ("questions", 4), ("analogies", 3), ("decomposition", 4), ("synthesis", 4),
    ])
    def test_methods(self, method, steps):
        result = emergence_clarity("Something about change feels unclear", method)
        assert result["method"] == method
        assert len(result["steps"]) == steps
        assert [s["order"] for s in result["steps"]] == list(range(1, steps + 1))

    def test_clarified_thought_and_score(self):
        result = emergence_clarity("I feel anxious about change")
        assert result["keywords"] == ["feel", "anxious", "about", "change"]
        assert result["clarifiedThought"] == "Clarified: feel anxious about change"
        assert result["clarityScore"] == pytest.approx(0.8)

    def test_no_keywords_falls_back_to_text(self):
        result = emergence_clarity("it is so")
        assert result["clarifiedThought"] == "Clarified: it is so"
        assert result["clarityScore"] == 0.0

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            emergence_clarity("fog", "meditation")

    def test_empty_thought(self):
        with pytest.raises(ValidationError):
            emergence_clarity("  ")
