"""
Short answer block handler.

One free-text answer, accepted when it matches any authored answer after
trimming and case-folding.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit, normalize_answer
from .models import ShortAnswerPayload


@dataclass(frozen=True)
class ShortAnswerPresentation:
    prompt: str


@register(BlockKind.SHORT_ANSWER)
class ShortAnswerHandler:
    """Handler for short answer blocks."""

    single_outcome = False

    def issues(self, payload: ShortAnswerPayload) -> list[str]:
        problems = []
        if not payload.prompt.strip():
            problems.append("Prompt is empty")
        if not self._accepted(payload):
            problems.append("No accepted answers")
        return problems

    def parse(self, payload: ShortAnswerPayload) -> list[CheckableUnit]:
        accepted = self._accepted(payload)
        if not accepted:
            return []
        return [
            CheckableUnit(
                index=0,
                kind=BlockKind.SHORT_ANSWER.value,
                expected=accepted,
                label=payload.prompt,
            )
        ]

    def present(self, payload: ShortAnswerPayload, rng: random.Random) -> ShortAnswerPresentation:
        return ShortAnswerPresentation(prompt=payload.prompt)

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if not isinstance(value, str):
            raise ResponseShapeError(f"Short answer expects text, got {type(value).__name__}")
        answer = normalize_answer(value)
        return any(answer == normalize_answer(accepted) for accepted in unit.expected)

    def _accepted(self, payload: ShortAnswerPayload) -> tuple[str, ...]:
        return tuple(a for a in payload.correct_answers if a.strip())
