"""
Unit tests for the validator/scorer.
"""

import pytest

from exercise_engine.blocks.base import GradeResult
from exercise_engine.errors import ResponseShapeError
from exercise_engine.parser import parse
from exercise_engine.scorer import score
from exercise_engine.session.response import ResponseState


@pytest.fixture
def quiz_units():
    return parse(
        "quiz",
        {
            "questions": [
                {"question": "Capital of France?", "options": ["Lyon", "Paris", "Nice"], "correct": [1]},
                {
                    "question": "Which are capitals?",
                    "options": ["Berlin", "Milan", "Madrid", "Porto"],
                    "correct": [0, 2],
                    "type": "multiple-select",
                },
            ]
        },
    )


class TestMultiUnitScoring:
    """correct / total for blanks, matching, ordering and quizzes."""

    def test_fill_in_blanks_half_right(self):
        units = parse("fill-in-the-blanks", {"content": "The [[capital]] of France is [[Paris]]."})
        result = score(units, {0: "city", 1: "Paris"})

        assert result.score == 0.5
        assert result.is_correct(1)
        assert not result.is_correct(0)

    def test_fill_in_blanks_ignores_case_and_spaces(self):
        units = parse("fill-in-the-blanks", {"content": "The [[capital]] of France is [[Paris]]."})
        assert score(units, {0: " Capital ", 1: "PARIS"}).score == 1.0

    def test_matching(self):
        units = parse(
            "matching",
            {"pairs": [{"left": "France", "right": "Paris"}, {"left": "Spain", "right": "Madrid"}]},
        )
        assert score(units, {0: "Paris", 1: "Paris"}).score == 0.5

    def test_ordering(self):
        units = parse("ordering", {"items": ["one", "two", "three", "four"]})
        result = score(units, {0: "one", 1: "three", 2: "two", 3: "four"})

        assert result.score == 0.5
        assert result.correct_count == 2

    def test_unanswered_units_are_incorrect(self, quiz_units):
        result = score(quiz_units, {0: 1})
        assert result.score == 0.5

    def test_empty_response_scores_zero(self, quiz_units):
        result = score(quiz_units, {})

        assert result.score == 0.0
        assert result.total == 2


class TestQuizScoring:
    """A question is correct only on the exact option set."""

    def test_exact_set(self, quiz_units):
        assert score(quiz_units, {0: 1, 1: {0, 2}}).score == 1.0

    def test_subset_is_wrong(self, quiz_units):
        assert score(quiz_units, {0: 1, 1: {0}}).score == 0.5

    def test_superset_is_wrong(self, quiz_units):
        assert score(quiz_units, {0: 1, 1: {0, 1, 2}}).score == 0.5

    def test_single_choice_as_set(self, quiz_units):
        assert score(quiz_units, {0: frozenset({1}), 1: [2, 0]}).score == 1.0

    def test_text_value_is_shape_error(self, quiz_units):
        with pytest.raises(ResponseShapeError):
            score(quiz_units, {0: "Paris"})

    def test_bool_value_is_shape_error(self, quiz_units):
        with pytest.raises(ResponseShapeError):
            score(quiz_units, {0: True})


class TestSingleOutcomeScoring:
    """Hotspot, memory match and code exercises are all-or-nothing."""

    def test_hotspot_found(self):
        units = parse("hotspot", {"hotspots": [{"x": 50, "y": 50, "radius": 10, "label": "Paris"}]})
        assert score(units, {0: (52, 48)}).score == 1.0

    def test_hotspot_partial_is_zero(self):
        units = parse(
            "hotspot",
            {"hotspots": [{"x": 20, "y": 20, "radius": 5, "label": "A"}, {"x": 80, "y": 80, "radius": 5, "label": "B"}]},
        )
        result = score(units, {0: (20, 21)})

        assert result.score == 0.0
        assert result.correct_count == 1

    def test_memory_all_pairs(self):
        units = parse("memory-match", {"pairs": [{"id": "a", "left": "1", "right": "one"}, {"id": "b", "left": "2", "right": "two"}]})

        assert score(units, {0: "a", 1: "b"}).score == 1.0
        assert score(units, {0: "a"}).score == 0.0

    def test_code_hello_world(self):
        units = parse("code-exercise", {"title": "Hello World", "initialCode": "# your code"})

        assert score(units, {0: 'print("Hello, World!")'}).score == 1.0
        assert score(units, {0: "# your code"}).score == 0.0

    def test_code_changed_stub(self):
        units = parse("code-exercise", {"title": "Sum", "initialCode": "def add(a, b):\n    pass"})

        assert score(units, {0: "def add(a, b):\n    return a + b"}).score == 1.0
        assert score(units, {0: "  def add(a, b):\n    pass  \n"}).score == 0.0


class TestShortAnswer:
    def test_trimmed_case_insensitive(self):
        units = parse("short-answer", {"prompt": "Capital?", "correctAnswers": ["Paris", "paris, france"]})
        assert score(units, {0: "  PARIS  "}).score == 1.0

    def test_any_accepted_answer(self):
        units = parse("short-answer", {"prompt": "Capital?", "correctAnswers": ["Paris", "paris, france"]})
        assert score(units, {0: "Paris, France"}).score == 1.0

    def test_wrong_answer(self):
        units = parse("short-answer", {"prompt": "Capital?", "correctAnswers": ["Paris"]})
        assert score(units, {0: "Lyon"}).score == 0.0


class TestInvariants:
    """Scoring is pure and rejects responses that do not fit the block."""

    def test_idempotent(self, quiz_units):
        response = {0: 1, 1: {0}}
        assert score(quiz_units, response) == score(quiz_units, response)

    def test_does_not_mutate_response(self, quiz_units):
        response = {0: 1, 1: {0, 2}}
        score(quiz_units, response)
        assert response == {0: 1, 1: {0, 2}}

    def test_unknown_unit_key(self, quiz_units):
        with pytest.raises(ResponseShapeError):
            score(quiz_units, {5: 1})

    def test_values_for_block_without_units(self):
        with pytest.raises(ResponseShapeError):
            score([], {0: "x"})

    def test_no_units_no_values(self):
        assert score([], {}) == GradeResult(score=0.0)

    def test_accepts_response_state(self, quiz_units):
        response = ResponseState({0: 1, 1: frozenset({0, 2})})
        assert score(quiz_units, response).passed

    def test_rejects_unknown_response_type(self, quiz_units):
        with pytest.raises(ResponseShapeError):
            score(quiz_units, [1, {0, 2}])
