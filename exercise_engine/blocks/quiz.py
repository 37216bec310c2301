"""
Quiz block handler.

- A block holds one or more questions, each with a list of options.
- Single-choice (multiple-choice, true-false) and multi-select questions.
- A question is correct only when the selected set equals the correct set
  exactly; partial credit comes only from answering several questions.
"""

import random
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import QuizPayload, QuizQuestion


@dataclass(frozen=True)
class QuestionView:
    unit_index: int
    question: str
    options: tuple[str, ...]
    multi_select: bool
    required_count: int


@dataclass(frozen=True)
class QuizPresentation:
    questions: tuple[QuestionView, ...]


def _valid_correct(question: QuizQuestion) -> frozenset[int]:
    return frozenset(i for i in question.correct if 0 <= i < len(question.options))


def select_option(current: Iterable[int], option: int, multi_select: bool) -> frozenset[int]:
    """
    Apply one click on an option.

    Multi-select toggles the option in or out of the selection;
    single-choice replaces the selection.
    """
    selected = frozenset(current)
    if not multi_select:
        return frozenset({option})
    if option in selected:
        return selected - {option}
    return selected | {option}


@register(BlockKind.QUIZ)
class QuizHandler:
    """Handler for quiz blocks."""

    single_outcome = False

    def issues(self, payload: QuizPayload) -> list[str]:
        problems = []
        if not payload.questions:
            problems.append("Quiz has no questions")
        for n, question in enumerate(payload.questions, 1):
            if not question.question.strip():
                problems.append(f"Question {n} has no text")
            if len(question.options) < 2:
                problems.append(f"Question {n} needs at least 2 options")
            correct = _valid_correct(question)
            if not correct:
                problems.append(f"Question {n} has no valid correct option")
            elif len(correct) != len(set(question.correct)):
                problems.append(f"Question {n} references options that do not exist")
            if not question.is_multi_select and len(correct) > 1:
                problems.append(f"Question {n} is single-choice but marks {len(correct)} options correct")
        return problems

    def parse(self, payload: QuizPayload) -> list[CheckableUnit]:
        units: list[CheckableUnit] = []
        for question in self._playable(payload):
            units.append(
                CheckableUnit(
                    index=len(units),
                    kind=BlockKind.QUIZ.value,
                    expected=_valid_correct(question),
                    label=question.question,
                )
            )
        return units

    def present(self, payload: QuizPayload, rng: random.Random) -> QuizPresentation:
        views = []
        for question in self._playable(payload):
            views.append(
                QuestionView(
                    unit_index=len(views),
                    question=question.question,
                    options=question.options,
                    multi_select=question.is_multi_select,
                    required_count=len(_valid_correct(question)),
                )
            )
        return QuizPresentation(questions=tuple(views))

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, set, frozenset, list, tuple)):
            raise ResponseShapeError(
                f"Quiz answer for question {unit.index} must be option indices, got {type(value).__name__}"
            )
        selected = frozenset({value}) if isinstance(value, int) else frozenset(value)
        if any(isinstance(i, bool) or not isinstance(i, int) for i in selected):
            raise ResponseShapeError(f"Quiz answer for question {unit.index} contains non-integer options")
        return selected == unit.expected

    def _playable(self, payload: QuizPayload) -> list[QuizQuestion]:
        """Questions that can be graded. Others are skipped, not fatal."""
        playable = []
        for question in payload.questions:
            if not question.options or not _valid_correct(question):
                logger.debug(f"Skipping unplayable quiz question {question.id or question.question!r}")
                continue
            playable.append(question)
        return playable
